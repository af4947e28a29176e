"""Query execution.

The operation layer hands the executor fully compiled plans: SQLAlchemy
predicates, ordering pairs, projections and nested relation plans. The
shipped ``SQLAlchemyExecutor`` runs them on an ``AsyncSession``, issuing one
statement for the root rows and one batched statement per relation level.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import and_, delete, func, select, tuple_, update
from sqlalchemy.exc import SQLAlchemyError

from .adapters import BaseAdapter, get_adapter
from .core.ordering import order_clauses
from .core.schema import Relation
from .core.utils import unique
from .errors import ExecutionError

_logger = logging.getLogger("tableql")

__all__ = ['QueryPlan', 'RelationPlan', 'Executor', 'SQLAlchemyExecutor']

_ROW_NUMBER = '_tableql_rn'


@dataclass
class RelationPlan:
    relation: Relation
    table: Any
    columns: List[str]
    where: Any = None
    order_by: List[Tuple[str, str]] = field(default_factory=list)
    offset: Optional[int] = None
    limit: Optional[int] = None
    relations: Dict[str, 'RelationPlan'] = field(default_factory=dict)


@dataclass
class QueryPlan:
    table_name: str
    table: Any
    columns: List[str]
    where: Any = None
    order_by: List[Tuple[str, str]] = field(default_factory=list)
    offset: Optional[int] = None
    limit: Optional[int] = None
    relations: Dict[str, RelationPlan] = field(default_factory=dict)


class Executor:
    """Interface the generated resolvers call into.

    Row-returning methods produce plain dicts keyed by column key; a one
    relation is stored under its name as a dict or ``None``, a many relation as
    a list. When ``returning`` is ``None`` the mutation methods return the
    affected row count instead of rows.
    """

    async def find_many(self, plan: QueryPlan) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def find_first(self, plan: QueryPlan) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def insert(self, table: Any, rows: Sequence[Mapping[str, Any]], *,
                     returning: Optional[List[str]], skip_conflicts: bool = False) -> Any:
        raise NotImplementedError

    async def update(self, table: Any, values: Mapping[str, Any], where: Any, *,
                     returning: Optional[List[str]]) -> Any:
        raise NotImplementedError

    async def delete(self, table: Any, where: Any, *, returning: Optional[List[str]]) -> Any:
        raise NotImplementedError


def _labeled(table: Any, keys: Sequence[str]) -> List[Any]:
    return [table.c[k].label(k) for k in keys]


class SQLAlchemyExecutor(Executor):
    def __init__(self, session: Any, adapter: Optional[BaseAdapter] = None, autocommit: bool = True):
        self.session = session
        self.adapter = adapter or get_adapter(self._dialect_name(session))
        self.autocommit = autocommit

    @staticmethod
    def _dialect_name(session: Any) -> Optional[str]:
        bind = getattr(session, 'bind', None)
        if bind is None and hasattr(session, 'get_bind'):
            bind = session.get_bind()
        dialect = getattr(bind, 'dialect', None)
        return getattr(dialect, 'name', None)

    # ---------- reads ----------
    async def find_many(self, plan: QueryPlan) -> List[Dict[str, Any]]:
        table = plan.table
        keys = unique(list(plan.columns) + self._parent_keys(plan.relations))
        stmt = select(*_labeled(table, keys))
        if plan.where is not None:
            stmt = stmt.where(plan.where)
        ordering = order_clauses(table, plan.order_by)
        if ordering:
            stmt = stmt.order_by(*ordering)
        if plan.offset is not None:
            stmt = stmt.offset(plan.offset)
        if plan.limit is not None:
            stmt = stmt.limit(plan.limit)
        _logger.debug("tableql: select %s columns=%s relations=%s", plan.table_name, keys, list(plan.relations))
        result = await self.session.execute(stmt)
        rows = [dict(r) for r in result.mappings().all()]
        await self._load_relations(rows, plan.relations)
        return rows

    async def find_first(self, plan: QueryPlan) -> Optional[Dict[str, Any]]:
        plan.limit = 1
        rows = await self.find_many(plan)
        return rows[0] if rows else None

    @staticmethod
    def _parent_keys(relations: Mapping[str, RelationPlan]) -> List[str]:
        out: List[str] = []
        for rp in relations.values():
            out.extend(src for src, _tgt in rp.relation.join)
        return out

    async def _load_relations(self, parents: List[Dict[str, Any]], relations: Mapping[str, RelationPlan]) -> None:
        for name, rp in relations.items():
            src_keys = [src for src, _tgt in rp.relation.join]
            tgt_keys = [tgt for _src, tgt in rp.relation.join]
            wanted = _distinct_keys(
                tuple(p.get(k) for k in src_keys) for p in parents
            )
            groups: Dict[Tuple[Any, ...], List[Dict[str, Any]]] = {}
            if wanted:
                for row in await self._fetch_related(rp, tgt_keys, wanted):
                    groups.setdefault(tuple(row.get(k) for k in tgt_keys), []).append(row)
            for p in parents:
                matched = groups.get(tuple(p.get(k) for k in src_keys), [])
                if rp.relation.is_many:
                    p[name] = list(matched)
                else:
                    p[name] = matched[0] if matched else None

    async def _fetch_related(self, rp: RelationPlan, tgt_keys: List[str],
                             wanted: List[Tuple[Any, ...]]) -> List[Dict[str, Any]]:
        table = rp.table
        keys = unique(list(rp.columns) + tgt_keys + self._parent_keys(rp.relations))
        if len(tgt_keys) == 1:
            cond = table.c[tgt_keys[0]].in_([w[0] for w in wanted])
        else:
            cond = tuple_(*[table.c[k] for k in tgt_keys]).in_(wanted)
        if rp.where is not None:
            cond = and_(cond, rp.where)
        ordering = order_clauses(table, rp.order_by)
        paginate = rp.relation.is_many and (rp.offset is not None or rp.limit is not None)
        if paginate:
            # per-parent window: number rows within each join key, then slice
            over_order = ordering or [c.asc() for c in table.primary_key.columns] or None
            rn = func.row_number().over(
                partition_by=[table.c[k] for k in tgt_keys], order_by=over_order,
            ).label(_ROW_NUMBER)
            inner = select(*_labeled(table, keys), rn).where(cond).subquery()
            low = rp.offset or 0
            bounds = [inner.c[_ROW_NUMBER] > low]
            if rp.limit is not None:
                bounds.append(inner.c[_ROW_NUMBER] <= low + rp.limit)
            stmt = select(*[inner.c[k] for k in keys]).where(and_(*bounds)).order_by(inner.c[_ROW_NUMBER])
        else:
            stmt = select(*_labeled(table, keys)).where(cond)
            if ordering:
                stmt = stmt.order_by(*ordering)
        result = await self.session.execute(stmt)
        rows = [dict(r) for r in result.mappings().all()]
        await self._load_relations(rows, rp.relations)
        return rows

    # ---------- writes ----------
    async def insert(self, table: Any, rows: Sequence[Mapping[str, Any]], *,
                     returning: Optional[List[str]], skip_conflicts: bool = False) -> Any:
        self._check_returning(returning)
        # consecutive rows sharing a key set form one statement; results keep input order
        batches: List[Tuple[Tuple[str, ...], List[Mapping[str, Any]]]] = []
        for row in rows:
            keys = tuple(row.keys())
            if batches and batches[-1][0] == keys:
                batches[-1][1].append(row)
            else:
                batches.append((keys, [row]))
        out: List[Dict[str, Any]] = []
        count = 0
        try:
            for keys, batch in batches:
                stmts = []
                if keys:
                    stmts.append(self.adapter.insert(table, skip_conflicts).values(list(batch)))
                else:
                    # all-default rows have no VALUES list to share
                    stmts.extend(self.adapter.insert(table, skip_conflicts) for _ in batch)
                for stmt in stmts:
                    got, n = await self._write(stmt, table, returning)
                    out.extend(got)
                    count += n
            await self._finish()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise ExecutionError.wrap(e) from e
        return out if returning is not None else count

    async def update(self, table: Any, values: Mapping[str, Any], where: Any, *,
                     returning: Optional[List[str]]) -> Any:
        self._check_returning(returning)
        stmt = update(table).values(dict(values))
        if where is not None:
            stmt = stmt.where(where)
        return await self._single_write(stmt, table, returning)

    async def delete(self, table: Any, where: Any, *, returning: Optional[List[str]]) -> Any:
        self._check_returning(returning)
        stmt = delete(table)
        if where is not None:
            stmt = stmt.where(where)
        return await self._single_write(stmt, table, returning)

    async def _single_write(self, stmt: Any, table: Any, returning: Optional[List[str]]) -> Any:
        try:
            rows, count = await self._write(stmt, table, returning)
            await self._finish()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise ExecutionError.wrap(e) from e
        return rows if returning is not None else count

    def _check_returning(self, returning: Optional[List[str]]) -> None:
        if returning is not None and not self.adapter.supports_returning:
            raise ExecutionError(
                f"The '{self.adapter.name}' dialect cannot return mutated rows; "
                f"build the schema with dialect='{self.adapter.name}' or mutation_mode='boolean'"
            )

    async def _write(self, stmt: Any, table: Any, returning: Optional[List[str]]) -> Tuple[List[Dict[str, Any]], int]:
        if returning is not None:
            stmt = stmt.returning(*_labeled(table, returning))
            result = await self.session.execute(stmt)
            rows = [dict(r) for r in result.mappings().all()]
            return rows, len(rows)
        result = await self.session.execute(stmt)
        return [], result.rowcount or 0

    async def _finish(self) -> None:
        if self.autocommit:
            await self.session.commit()
        else:
            await self.session.flush()


def _distinct_keys(items) -> List[Tuple[Any, ...]]:
    """Distinct key tuples without NULL members, first-seen order."""
    seen = set()
    out: List[Tuple[Any, ...]] = []
    for it in items:
        if any(v is None for v in it) or it in seen:
            continue
        seen.add(it)
        out.append(it)
    return out

"""Operation assembly: the generated query and mutation root fields.

Every table gets six root fields. Each resolver validates its tagged argument
object, compiles filters, ordering and the selection into a plan, and only
then asks the executor for rows. Failures travel as ``Err`` values up to a
single boundary that turns them into ``GraphQLError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import strawberry
from strawberry.types import Info as StrawberryInfo

from .adapters import BaseAdapter, get_adapter
from .core.arguments import DeleteArgs, InsertArgs, SelectManyArgs, SelectOneArgs, UpdateArgs
from .core.filters import FilterCompiler
from .core.hydration import Remapper
from .core.naming import operation_names
from .core.ordering import compile_order_by
from .core.result import Err, Ok, Result
from .core.schema import SchemaRegistry
from .core.selection import Selection, parse_resolve_info, prune_selection
from .core.types import PLACEHOLDER_FIELD, TableTypes, TypeGenerator
from .core.utils import get_db_session, input_to_dict
from .errors import ArgumentError, ExecutionError, SchemaError, TableQLError, to_graphql_error
from .executor import Executor, QueryPlan, RelationPlan, SQLAlchemyExecutor

_logger = logging.getLogger("tableql")

__all__ = ['MutationReturn', 'Operation', 'GeneratedEntities', 'OperationAssembler', 'resolve_mutation_mode']

RETURNING = 'returning'
BOOLEAN = 'boolean'


@strawberry.type(description="Result of a mutation on a dialect that cannot return rows")
class MutationReturn:
    isSuccess: bool


@dataclass
class Operation:
    name: str
    kind: str  # 'query' | 'mutation'
    table_name: str
    resolver: Callable[..., Any]
    description: Optional[str] = None

    def as_field(self) -> Any:
        """A fresh Strawberry field for this operation; fields cannot be shared between root types."""
        return strawberry.field(resolver=self.resolver, name=self.name, description=self.description)


@dataclass
class GeneratedEntities:
    queries: Dict[str, Operation] = field(default_factory=dict)
    mutations: Dict[str, Operation] = field(default_factory=dict)
    # table name -> {'insert', 'update', 'filters', 'order_by'}
    inputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    # table name -> {'select', 'item'}
    types: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def _strip_placeholder(values: Any) -> Any:
    if isinstance(values, Mapping):
        return {k: v for k, v in values.items() if k != PLACEHOLDER_FIELD}
    return values


class OperationAssembler:
    def __init__(self, registry: SchemaRegistry, generator: TypeGenerator, remapper: Remapper, *,
                 mutation_mode: str = RETURNING, skip_conflicts: bool = True,
                 adapter: Optional[BaseAdapter] = None, autocommit: bool = True,
                 executor_factory: Optional[Callable[[Any], Executor]] = None):
        if mutation_mode not in (RETURNING, BOOLEAN):
            raise SchemaError(f"mutation_mode must be '{RETURNING}' or '{BOOLEAN}', got {mutation_mode!r}")
        self.registry = registry
        self.generator = generator
        self.remapper = remapper
        self.filters = FilterCompiler(registry, generator.mapper)
        self.mutation_mode = mutation_mode
        self.skip_conflicts = skip_conflicts
        self.adapter = adapter
        self.autocommit = autocommit
        self.executor_factory = executor_factory

    # ---------- assembly ----------
    def assemble(self) -> GeneratedEntities:
        entities = GeneratedEntities()
        seen: Dict[str, str] = {}
        for table_name in self.registry.table_names:
            types = self.generator.table_types(table_name)
            entities.types[table_name] = {'select': types.select, 'item': types.item}
            entities.inputs[table_name] = {
                'insert': types.insert,
                'update': types.update,
                'filters': types.filters,
                'order_by': types.order_by,
            }
            for op in self._table_operations(table_name, types):
                owner = seen.get(op.name)
                if owner is not None:
                    raise SchemaError(
                        f"Operation name '{op.name}' is generated for both '{owner}' and '{table_name}'"
                    )
                seen[op.name] = table_name
                target = entities.queries if op.kind == 'query' else entities.mutations
                target[op.name] = op
        _logger.info("tableql: assembled %d queries and %d mutations",
                     len(entities.queries), len(entities.mutations))
        return entities

    def _table_operations(self, table_name: str, types: TableTypes) -> List[Operation]:
        names = operation_names(table_name)
        return [
            Operation(names['select_many'], 'query', table_name,
                      self._select_many_resolver(names['select_many'], table_name, types)),
            Operation(names['select_one'], 'query', table_name,
                      self._select_one_resolver(names['select_one'], table_name, types)),
            Operation(names['insert_many'], 'mutation', table_name,
                      self._insert_resolver(names['insert_many'], table_name, types, single=False)),
            Operation(names['insert_one'], 'mutation', table_name,
                      self._insert_resolver(names['insert_one'], table_name, types, single=True)),
            Operation(names['update'], 'mutation', table_name,
                      self._update_resolver(names['update'], table_name, types)),
            Operation(names['delete'], 'mutation', table_name,
                      self._delete_resolver(names['delete'], table_name, types)),
        ]

    def _mutation_return(self, many_of: Any, single: bool = False) -> Any:
        if self.mutation_mode == BOOLEAN:
            return MutationReturn
        return Optional[many_of] if single else List[many_of]

    def _select_many_resolver(self, op_name: str, table_name: str, types: TableTypes):
        async def resolve(info, where=None, orderBy=None, offset=None, limit=None):
            args = SelectManyArgs(where=input_to_dict(where), order_by=input_to_dict(orderBy),
                                  offset=offset, limit=limit)
            return await self._guard(op_name, self._select_many(info, table_name, args))
        resolve.__name__ = op_name
        resolve.__annotations__ = {
            'info': StrawberryInfo,
            'where': Optional[types.filters],
            'orderBy': Optional[types.order_by],
            'offset': Optional[int],
            'limit': Optional[int],
            'return': List[types.select],
        }
        return resolve

    def _select_one_resolver(self, op_name: str, table_name: str, types: TableTypes):
        async def resolve(info, where=None, orderBy=None, offset=None):
            args = SelectOneArgs(where=input_to_dict(where), order_by=input_to_dict(orderBy), offset=offset)
            return await self._guard(op_name, self._select_one(info, table_name, args))
        resolve.__name__ = op_name
        resolve.__annotations__ = {
            'info': StrawberryInfo,
            'where': Optional[types.filters],
            'orderBy': Optional[types.order_by],
            'offset': Optional[int],
            'return': Optional[types.select],
        }
        return resolve

    def _insert_resolver(self, op_name: str, table_name: str, types: TableTypes, single: bool):
        if single:
            async def resolve(info, values):
                args = InsertArgs(values=[_strip_placeholder(input_to_dict(values))], single=True)
                return await self._guard(op_name, self._insert(info, table_name, args))
            values_ann: Any = types.insert
        else:
            async def resolve(info, values):
                rows = [_strip_placeholder(r) for r in (input_to_dict(values) or [])]
                return await self._guard(op_name, self._insert(info, table_name, InsertArgs(values=rows)))
            values_ann = List[types.insert]
        resolve.__name__ = op_name
        resolve.__annotations__ = {
            'info': StrawberryInfo,
            'values': values_ann,
            'return': self._mutation_return(types.item, single=single),
        }
        return resolve

    def _update_resolver(self, op_name: str, table_name: str, types: TableTypes):
        async def resolve(info, set, where=None):  # noqa: A002
            args = UpdateArgs(set=_strip_placeholder(input_to_dict(set)), where=input_to_dict(where))
            return await self._guard(op_name, self._update(info, table_name, args))
        resolve.__name__ = op_name
        resolve.__annotations__ = {
            'info': StrawberryInfo,
            'set': types.update,
            'where': Optional[types.filters],
            'return': self._mutation_return(types.item),
        }
        return resolve

    def _delete_resolver(self, op_name: str, table_name: str, types: TableTypes):
        async def resolve(info, where=None):
            args = DeleteArgs(where=input_to_dict(where))
            return await self._guard(op_name, self._delete(info, table_name, args))
        resolve.__name__ = op_name
        resolve.__annotations__ = {
            'info': StrawberryInfo,
            'where': Optional[types.filters],
            'return': self._mutation_return(types.item),
        }
        return resolve

    # ---------- boundary ----------
    @staticmethod
    async def _guard(op_name: str, body) -> Any:
        try:
            return await body
        except TableQLError as e:
            raise to_graphql_error(e, operation=op_name) from e

    async def _run(self, call) -> Any:
        try:
            return await call
        except TableQLError:
            raise
        except Exception as e:
            raise ExecutionError.wrap(e) from e

    def executor_for(self, info: Any) -> Executor:
        ctx = getattr(info, 'context', None)
        if isinstance(ctx, Mapping):
            executor = ctx.get('executor')
        else:
            executor = getattr(ctx, 'executor', None)
        if executor is not None:
            return executor
        session = get_db_session(info)
        if session is not None:
            return SQLAlchemyExecutor(session, adapter=self.adapter, autocommit=self.autocommit)
        if self.executor_factory is not None:
            return self.executor_factory(info)
        raise ExecutionError("No executor available: put 'executor' or 'db_session' into the GraphQL context")

    # ---------- planning ----------
    def _selection(self, info: Any, table_name: str) -> Result:
        try:
            tree = parse_resolve_info(info)
        except ArgumentError as e:
            return Err(e)
        return prune_selection(self.registry, table_name, tree.fields)

    def _relation_plans(self, selection: Selection, path: str = '') -> Result:
        plans: Dict[str, RelationPlan] = {}
        for name, rs in selection.relations.items():
            rel_path = f"{path}.{name}" if path else name
            target = rs.relation.target
            where = self.filters.compile(target, rs.args.where, f"{rel_path}.where")
            if not where.is_ok:
                return where
            order = compile_order_by(self.registry, target, rs.args.order_by, f"{rel_path}.orderBy")
            if not order.is_ok:
                return order
            nested = self._relation_plans(rs.selection, rel_path)
            if not nested.is_ok:
                return nested
            plans[name] = RelationPlan(
                relation=rs.relation,
                table=self.registry.table(target),
                columns=list(rs.selection.columns),
                where=where.value,
                order_by=order.value,
                offset=rs.args.offset,
                limit=rs.args.limit,
                relations=nested.value,
            )
        return Ok(plans)

    def _query_plan(self, info: Any, table_name: str, args: Any, limit: Optional[int]) -> Result:
        selected = self._selection(info, table_name)
        if not selected.is_ok:
            return selected
        selection: Selection = selected.value
        where = self.filters.compile(table_name, args.where)
        if not where.is_ok:
            return where
        order = compile_order_by(self.registry, table_name, args.order_by)
        if not order.is_ok:
            return order
        relations = self._relation_plans(selection)
        if not relations.is_ok:
            return relations
        plan = QueryPlan(
            table_name=table_name,
            table=self.registry.table(table_name),
            columns=list(selection.columns),
            where=where.value,
            order_by=order.value,
            offset=args.offset,
            limit=limit,
            relations=relations.value,
        )
        return Ok((plan, selection))

    def _returning(self, info: Any, table_name: str) -> Result:
        if self.mutation_mode == BOOLEAN:
            return Ok(None)
        return self._selection(info, table_name).map(lambda s: list(s.columns))

    # ---------- operations ----------
    async def _select_many(self, info: Any, table_name: str, args: SelectManyArgs) -> List[Dict[str, Any]]:
        planned = args.validate().and_then(lambda a: self._query_plan(info, table_name, a, a.limit))
        plan, selection = planned.unwrap()
        _logger.debug("tableql: %s plan where=%s order=%s", table_name, plan.where is not None, plan.order_by)
        rows = await self._run(self.executor_for(info).find_many(plan))
        return self.remapper.remap_rows(table_name, rows, selection)

    async def _select_one(self, info: Any, table_name: str, args: SelectOneArgs) -> Optional[Dict[str, Any]]:
        planned = args.validate().and_then(lambda a: self._query_plan(info, table_name, a, 1))
        plan, selection = planned.unwrap()
        row = await self._run(self.executor_for(info).find_first(plan))
        return self.remapper.remap_row(table_name, row, selection)

    async def _insert(self, info: Any, table_name: str, args: InsertArgs) -> Any:
        args.validate().unwrap()
        rows = [
            self.remapper.remap_input(table_name, row, 'values' if args.single else f"values[{i}]")
            for i, row in enumerate(args.values)
        ]
        returning = self._returning(info, table_name).unwrap()
        table = self.registry.table(table_name)
        result = await self._run(self.executor_for(info).insert(
            table, rows, returning=returning, skip_conflicts=self.skip_conflicts,
        ))
        if returning is None:
            return MutationReturn(isSuccess=True)
        out = self.remapper.remap_rows(table_name, result)
        if args.single:
            return out[0] if out else None
        return out

    async def _update(self, info: Any, table_name: str, args: UpdateArgs) -> Any:
        args.validate().unwrap()
        values = self.remapper.remap_input(table_name, args.set, 'set')
        where = self.filters.compile(table_name, args.where).unwrap()
        returning = self._returning(info, table_name).unwrap()
        result = await self._run(self.executor_for(info).update(
            self.registry.table(table_name), values, where, returning=returning,
        ))
        if returning is None:
            return MutationReturn(isSuccess=True)
        return self.remapper.remap_rows(table_name, result)

    async def _delete(self, info: Any, table_name: str, args: DeleteArgs) -> Any:
        args.validate().unwrap()
        where = self.filters.compile(table_name, args.where).unwrap()
        returning = self._returning(info, table_name).unwrap()
        result = await self._run(self.executor_for(info).delete(
            self.registry.table(table_name), where, returning=returning,
        ))
        if returning is None:
            return MutationReturn(isSuccess=True)
        return self.remapper.remap_rows(table_name, result)


def resolve_mutation_mode(mutation_mode: Optional[str], dialect: Optional[str]) -> str:
    """Explicit mode wins; otherwise the dialect adapter decides."""
    if mutation_mode is not None:
        return mutation_mode
    if dialect is None:
        return RETURNING
    return get_adapter(dialect).mutation_mode

"""Schema input and the explicit registry built from it.

A schema is a mapping of identifiers to SQLAlchemy ``Table`` objects (or ORM
classes exposing ``__table__``) and ``Relations`` declarations::

    users = Table('users', metadata, Column('id', Integer, primary_key=True), ...)
    posts = Table('posts', metadata, ..., Column('author_id', ForeignKey('users.id')))

    schema = {
        'users': users,
        'posts': posts,
        'users_relations': relations(users, {'posts': many(posts)}),
        'posts_relations': relations(posts, {
            'author': one(users, fields=[posts.c.author_id], references=[users.c.id]),
        }),
    }

The registry resolves every relation target and join condition once, at load
time, so a broken schema fails before any request is served.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import MetaData, Table
from sqlalchemy.sql.schema import Column

from ..errors import SchemaError
from .naming import is_graphql_name
from .result import Err, Ok, Result

_logger = logging.getLogger("tableql")

ONE = 'one'
MANY = 'many'

__all__ = [
    'ONE',
    'MANY',
    'Relation',
    'RelationSpec',
    'Relations',
    'one',
    'many',
    'relations',
    'SchemaRegistry',
]

TableRef = Union[Table, str, Any]


@dataclass(frozen=True)
class RelationSpec:
    """An unresolved relation edge as declared by the user."""
    target: TableRef
    cardinality: str
    fields: Tuple[Any, ...] = ()
    references: Tuple[Any, ...] = ()
    relation_name: Optional[str] = None


def one(target: TableRef, *, fields: Optional[Sequence[Any]] = None, references: Optional[Sequence[Any]] = None,
        relation_name: Optional[str] = None) -> RelationSpec:
    """Declare a relation yielding at most one row of ``target``.

    ``fields`` are columns of the owning table, ``references`` the matching
    columns of ``target``. When omitted the join is inferred from foreign keys.
    """
    fields = tuple(fields or ())
    references = tuple(references or ())
    if len(fields) != len(references):
        raise SchemaError("one(): fields and references must have the same length")
    return RelationSpec(target=target, cardinality=ONE, fields=fields, references=references,
                        relation_name=relation_name)


def many(target: TableRef, *, relation_name: Optional[str] = None) -> RelationSpec:
    """Declare a relation yielding a sequence of ``target`` rows."""
    return RelationSpec(target=target, cardinality=MANY, relation_name=relation_name)


class Relations:
    """Relation declarations owned by one table."""

    def __init__(self, table: TableRef, config: Union[Mapping[str, RelationSpec], Callable[[], Mapping[str, RelationSpec]]]):
        self.table = table
        self._config = config

    def config(self) -> Dict[str, RelationSpec]:
        cfg = self._config() if callable(self._config) else self._config
        return dict(cfg or {})


def relations(table: TableRef, config) -> Relations:
    return Relations(table, config)


@dataclass(frozen=True)
class Relation:
    """A resolved relation edge between two schema tables."""
    name: str
    source: str
    target: str
    cardinality: str
    # (source column key, target column key) pairs forming the join condition
    join: Tuple[Tuple[str, str], ...] = field(default=())
    relation_name: Optional[str] = None

    @property
    def is_one(self) -> bool:
        return self.cardinality == ONE

    @property
    def is_many(self) -> bool:
        return self.cardinality == MANY


def _as_table(value: Any) -> Optional[Table]:
    if isinstance(value, Table):
        return value
    tbl = getattr(value, '__table__', None)
    if isinstance(tbl, Table):
        return tbl
    return None


def _column_key(table: Table, col: Any) -> str:
    if isinstance(col, str):
        if col not in table.c:
            raise SchemaError(f"Column '{col}' not found on table '{table.name}'")
        return col
    if isinstance(col, Column) or hasattr(col, 'key'):
        # ORM attributes expose the column key as .key as well
        key = getattr(col, 'key', None)
        if key in table.c:
            return key
    raise SchemaError(f"Cannot resolve column {col!r} on table '{table.name}'")


class SchemaRegistry:
    """Fixed lookup of tables and relations built once per schema load."""

    def __init__(self, tables: Dict[str, Table], relation_map: Dict[str, List[Relation]]):
        self._tables = tables
        self._relations = relation_map
        self._names_by_table = {id(t): name for name, t in tables.items()}

    # ---------- construction ----------
    @classmethod
    def from_input(cls, schema: Union[Mapping[str, Any], MetaData]) -> 'SchemaRegistry':
        if isinstance(schema, MetaData):
            entries: List[Tuple[str, Any]] = list(schema.tables.items())
        else:
            entries = list((schema or {}).items())
        tables: Dict[str, Table] = {}
        declared: List[Relations] = []
        for key, value in entries:
            if isinstance(value, Relations):
                declared.append(value)
                continue
            tbl = _as_table(value)
            if tbl is not None:
                tables[str(key)] = tbl
        if not tables:
            raise SchemaError("No tables detected in the provided schema")
        for name, tbl in tables.items():
            if not is_graphql_name(name):
                raise SchemaError(f"Table identifier '{name}' is not a valid GraphQL name")
            if not len(tbl.columns):
                raise SchemaError(f"Table '{name}' has no columns")
            for col in tbl.columns:
                if not is_graphql_name(col.key):
                    raise SchemaError(f"Column '{name}.{col.key}' is not a valid GraphQL name")
        registry = cls(tables, {name: [] for name in tables})
        pending: List[Tuple[str, str, RelationSpec]] = []
        for decl in declared:
            owner = registry.table_name_of(decl.table)
            if owner is None:
                raise SchemaError(f"Relations declared for a table that is not part of the schema: {decl.table!r}")
            for rel_name, spec in decl.config().items():
                if not isinstance(spec, RelationSpec):
                    raise SchemaError(f"Relation '{owner}.{rel_name}' must be declared with one() or many()")
                if not is_graphql_name(rel_name):
                    raise SchemaError(f"Relation '{owner}.{rel_name}' is not a valid GraphQL name")
                if rel_name in tables[owner].c:
                    raise SchemaError(f"Relation '{owner}.{rel_name}' collides with a column of the same name")
                pending.append((owner, rel_name, spec))
        # First pass resolves targets and explicit joins, so many() can look at the inverse one()
        partial: Dict[Tuple[str, str], Tuple[str, RelationSpec, Tuple[Tuple[str, str], ...]]] = {}
        for owner, rel_name, spec in pending:
            target = registry.table_name_of(spec.target)
            if target is None:
                raise SchemaError(f"Relation '{owner}.{rel_name}' targets a table that is not part of the schema")
            join: Tuple[Tuple[str, str], ...] = ()
            if spec.fields:
                src_tbl, tgt_tbl = tables[owner], tables[target]
                join = tuple(
                    (_column_key(src_tbl, f), _column_key(tgt_tbl, r))
                    for f, r in zip(spec.fields, spec.references)
                )
            partial[(owner, rel_name)] = (target, spec, join)
        for (owner, rel_name), (target, spec, join) in partial.items():
            if not join:
                join = registry._infer_join(owner, rel_name, target, spec, partial)
            registry._relations[owner].append(Relation(
                name=rel_name, source=owner, target=target, cardinality=spec.cardinality,
                join=join, relation_name=spec.relation_name,
            ))
        _logger.debug("tableql: loaded %d tables, %d relations", len(tables), len(partial))
        return registry

    def _infer_join(self, owner: str, rel_name: str, target: str, spec: RelationSpec, partial) -> Tuple[Tuple[str, str], ...]:
        # Inverse one() declared on the target pointing back at the owner
        inverse = [
            j for (o, _n), (t, s, j) in partial.items()
            if o == target and t == owner and s.cardinality == ONE and j
            and (spec.relation_name is None or s.relation_name == spec.relation_name)
        ]
        if spec.cardinality == MANY and len(inverse) == 1:
            return tuple((tgt, src) for src, tgt in inverse[0])
        src_tbl, tgt_tbl = self._tables[owner], self._tables[target]
        outgoing = self._fk_pairs(src_tbl, tgt_tbl)
        incoming = self._fk_pairs(tgt_tbl, src_tbl)
        if spec.cardinality == ONE and len(outgoing) == 1:
            return outgoing[0]
        if len(incoming) == 1 and not (spec.cardinality == ONE and outgoing):
            return tuple((tgt, src) for src, tgt in incoming[0])
        raise SchemaError(
            f"Cannot infer the join for relation '{owner}.{rel_name}' -> '{target}'; "
            f"declare it with one(..., fields=[...], references=[...])"
        )

    @staticmethod
    def _fk_pairs(from_tbl: Table, to_tbl: Table) -> List[Tuple[Tuple[str, str], ...]]:
        """Foreign key constraints on ``from_tbl`` referencing ``to_tbl`` as key pairs."""
        out: List[Tuple[Tuple[str, str], ...]] = []
        for fkc in from_tbl.foreign_key_constraints:
            if fkc.referred_table is not to_tbl:
                continue
            out.append(tuple((el.parent.key, el.column.key) for el in fkc.elements))
        return out

    # ---------- lookups ----------
    def table_name_of(self, value: Any) -> Optional[str]:
        if isinstance(value, str):
            return value if value in self._tables else None
        tbl = _as_table(value)
        if tbl is None:
            return None
        return self._names_by_table.get(id(tbl))

    def resolve_table(self, name: str) -> Result:
        tbl = self._tables.get(name)
        if tbl is None:
            return Err(SchemaError(f"Table '{name}' not found in schema"))
        return Ok(tbl)

    def table(self, name: str) -> Table:
        return self.resolve_table(name).unwrap()

    def relations_of(self, name: str) -> List[Relation]:
        return list(self._relations.get(name, ()))

    def relation(self, table_name: str, relation_name: str) -> Optional[Relation]:
        for rel in self._relations.get(table_name, ()):
            if rel.name == relation_name:
                return rel
        return None

    @property
    def table_names(self) -> List[str]:
        return list(self._tables.keys())

    def items(self) -> Iterable[Tuple[str, Table]]:
        return self._tables.items()

    def identity_column(self, name: str) -> str:
        """Column key used when a request selects no scalar column."""
        tbl = self.table(name)
        pk = list(tbl.primary_key.columns)
        if pk:
            return pk[0].key
        for col in tbl.columns:
            if col.unique:
                return col.key
        return next(iter(tbl.columns)).key

"""Relation-aware type generation.

For every schema table the generator builds Strawberry classes on the fly:
the select output type (scalars plus relation fields), the mutation output
type (scalars only), insert/update inputs and the filter and order-by inputs.
Relation fields point at the select type of their target table. Select types
are memoized per (table, remaining hops): with a depth limit each level gets
its own `<Table>Depth<N>Relation`, without one the `<Table>SelectItem` types
reference each other, so a cyclic relation graph yields cyclic GraphQL types.

Output types are resolved from plain dicts produced by the remapper, so every
generated field carries a small resolver reading its key off the parent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import strawberry
from strawberry import UNSET

from ..errors import SchemaError
from .filters import FLAG_OPERATORS, LIST_OPERATORS, operators_for
from .naming import (
    column_filters_name,
    filters_name,
    insert_input_name,
    item_type_name,
    order_by_name,
    relation_type_name,
    select_type_name,
    update_input_name,
)
from .ordering import OrderDirection
from .scalars import PrimitiveTypeMapper
from .schema import Relation, SchemaRegistry

_logger = logging.getLogger("tableql")

__all__ = ['TableTypes', 'TypeGenerator', 'insert_required', 'writable_columns', 'PLACEHOLDER_FIELD']

# Strawberry refuses input objects without fields; empty inputs carry this one.
PLACEHOLDER_FIELD = '_'


@dataclass(frozen=True)
class TableTypes:
    table_name: str
    select: Any
    item: Any
    insert: Any
    update: Any
    filters: Any
    order_by: Any


def writable_columns(table: Any) -> List[Any]:
    return [c for c in table.columns if c.computed is None]


def insert_required(table: Any, column: Any) -> bool:
    """Whether an insert must provide a value for ``column``."""
    if column.nullable or column.computed is not None or column.identity is not None:
        return False
    if column.default is not None or column.server_default is not None:
        return False
    if column is table.autoincrement_column:
        return False
    return True


def _read(root: Any, key: str) -> Any:
    if isinstance(root, Mapping):
        return root.get(key)
    return getattr(root, key, None)


def _make_value_resolver(key: str, annotation: Any):
    def resolve(root):
        return _read(root, key)
    resolve.__name__ = f"resolve_{key}"
    resolve.__annotations__ = {'return': annotation}
    return resolve


def _make_one_relation_resolver(key: str, target_filters: Any, target_type: Any):
    def resolve(root, where=None):
        return _read(root, key)
    resolve.__name__ = f"resolve_{key}"
    resolve.__annotations__ = {
        'where': Optional[target_filters],
        'return': Optional[target_type],
    }
    return resolve


def _make_many_relation_resolver(key: str, target_filters: Any, target_order_by: Any, target_type: Any):
    def resolve(root, where=None, orderBy=None, offset=None, limit=None):
        return _read(root, key) or []
    resolve.__name__ = f"resolve_{key}"
    resolve.__annotations__ = {
        'where': Optional[target_filters],
        'orderBy': Optional[target_order_by],
        'offset': Optional[int],
        'limit': Optional[int],
        'return': List[target_type],
    }
    return resolve


def _new_class(name: str) -> Any:
    return type(name, (), {'__module__': __name__})


class TypeGenerator:
    """Builds and memoizes the Strawberry types of one schema.

    ``relations_depth_limit`` bounds relation hops: 0 disables relation
    fields, ``None`` shares one select type per table.
    """

    def __init__(self, registry: SchemaRegistry, mapper: PrimitiveTypeMapper,
                 relations_depth_limit: Optional[int] = None):
        self.registry = registry
        self.mapper = mapper
        self.relations_depth_limit = relations_depth_limit
        # type name -> (table name, kind, class)
        self._memo: Dict[str, Tuple[str, str, Any]] = {}
        self._tables: Dict[str, TableTypes] = {}

    # ---------- public API ----------
    def generate(self) -> Dict[str, TableTypes]:
        for name in self.registry.table_names:
            self.table_types(name)
        _logger.info("tableql: generated %d types for %d tables", len(self._memo), len(self._tables))
        return dict(self._tables)

    def table_types(self, table_name: str) -> TableTypes:
        cached = self._tables.get(table_name)
        if cached is not None:
            return cached
        self.registry.resolve_table(table_name).unwrap()
        filters = self.filters_type(table_name)
        order_by = self.order_by_type(table_name)
        types = TableTypes(
            table_name=table_name,
            select=self._select_type(table_name, self.relations_depth_limit),
            item=self.item_type(table_name),
            insert=self.insert_type(table_name),
            update=self.update_type(table_name),
            filters=filters,
            order_by=order_by,
        )
        self._tables[table_name] = types
        return types

    @property
    def type_names(self) -> List[str]:
        return list(self._memo.keys())

    # ---------- memo ----------
    def _lookup(self, name: str, table_name: str, kind: str) -> Optional[Any]:
        hit = self._memo.get(name)
        if hit is None:
            return None
        if hit[0] != table_name or hit[1] != kind:
            raise SchemaError(
                f"Generated type name '{name}' is claimed by both '{hit[0]}' ({hit[1]}) and '{table_name}' ({kind})"
            )
        return hit[2]

    def _remember(self, name: str, table_name: str, kind: str, cls: Any) -> Any:
        self._memo[name] = (table_name, kind, cls)
        return cls

    # ---------- scalar output fields ----------
    def _scalar_fields(self, cls: Any, table_name: str, anns: Dict[str, Any]) -> None:
        table = self.registry.table(table_name)
        for col in table.columns:
            mapping = self.mapper.map_column(table_name, col)
            ann = Optional[mapping.annotation] if col.nullable else mapping.annotation
            anns[col.key] = ann
            setattr(cls, col.key, strawberry.field(resolver=_make_value_resolver(col.key, ann), name=col.key))

    def item_type(self, table_name: str) -> Any:
        name = item_type_name(table_name)
        hit = self._lookup(name, table_name, 'item')
        if hit is not None:
            return hit
        cls = _new_class(name)
        anns: Dict[str, Any] = {}
        self._scalar_fields(cls, table_name, anns)
        cls.__annotations__ = anns
        return self._remember(name, table_name, 'item', strawberry.type(cls, name=name))

    def _select_type(self, table_name: str, remaining: Optional[int]) -> Any:
        """Select type of ``table_name`` allowing ``remaining`` more relation hops.

        Types are keyed by (table, remaining); without a depth limit every
        table has a single select type and cycles resolve to a reference to
        the type under construction.
        """
        if remaining is None or remaining == self.relations_depth_limit:
            name = select_type_name(table_name)
        else:
            name = relation_type_name(table_name, remaining)
        hit = self._lookup(name, table_name, 'select')
        if hit is not None:
            return hit
        cls = _new_class(name)
        # claimed before relation fields so cyclic relations find it
        self._remember(name, table_name, 'select', cls)
        anns: Dict[str, Any] = {}
        self._scalar_fields(cls, table_name, anns)
        if remaining is None or remaining > 0:
            nested = None if remaining is None else remaining - 1
            for rel in self.registry.relations_of(table_name):
                self._relation_field(cls, anns, rel, nested)
        cls.__annotations__ = anns
        return strawberry.type(cls, name=name)

    def _relation_field(self, cls: Any, anns: Dict[str, Any], rel: Relation, remaining: Optional[int]) -> None:
        target_type = self._select_type(rel.target, remaining)
        target_filters = self.filters_type(rel.target)
        if rel.is_many:
            ann = List[target_type]
            resolver = _make_many_relation_resolver(rel.name, target_filters, self.order_by_type(rel.target),
                                                    target_type)
        else:
            ann = Optional[target_type]
            resolver = _make_one_relation_resolver(rel.name, target_filters, target_type)
        anns[rel.name] = ann
        setattr(cls, rel.name, strawberry.field(resolver=resolver, name=rel.name))

    # ---------- inputs ----------
    def column_filters_type(self, table_name: str, col: Any) -> Any:
        name = column_filters_name(table_name, col.key)
        hit = self._lookup(name, table_name, 'column_filters')
        if hit is not None:
            return hit
        mapping = self.mapper.map_column(table_name, col)
        cls = _new_class(name)
        anns: Dict[str, Any] = {}
        for op in operators_for(mapping):
            if op in FLAG_OPERATORS:
                anns[op] = Optional[bool]
            elif op in LIST_OPERATORS:
                anns[op] = Optional[List[mapping.annotation]]
            else:
                anns[op] = Optional[mapping.annotation]
            setattr(cls, op, strawberry.field(default=UNSET, name=op))
        cls.__annotations__ = anns
        return self._remember(name, table_name, 'column_filters', strawberry.input(cls, name=name))

    def filters_type(self, table_name: str) -> Any:
        name = filters_name(table_name)
        hit = self._lookup(name, table_name, 'filters')
        if hit is not None:
            return hit
        table = self.registry.table(table_name)
        cls = _new_class(name)
        anns: Dict[str, Any] = {}
        for col in table.columns:
            anns[col.key] = Optional[self.column_filters_type(table_name, col)]
            setattr(cls, col.key, strawberry.field(default=UNSET, name=col.key))
        for combinator in ('AND', 'OR', 'NOT'):
            anns[combinator] = Optional[List[cls]]
            setattr(cls, combinator, strawberry.field(default=UNSET, name=combinator))
        cls.__annotations__ = anns
        return self._remember(name, table_name, 'filters', strawberry.input(cls, name=name))

    def order_by_type(self, table_name: str) -> Any:
        name = order_by_name(table_name)
        hit = self._lookup(name, table_name, 'order_by')
        if hit is not None:
            return hit
        table = self.registry.table(table_name)
        cls = _new_class(name)
        anns: Dict[str, Any] = {}
        for col in table.columns:
            if self.mapper.map_column(table_name, col).kind == 'json':
                continue
            anns[col.key] = Optional[OrderDirection]
            setattr(cls, col.key, strawberry.field(default=UNSET, name=col.key))
        if not anns:
            self._placeholder(cls, anns)
        cls.__annotations__ = anns
        return self._remember(name, table_name, 'order_by', strawberry.input(cls, name=name))

    def insert_type(self, table_name: str) -> Any:
        name = insert_input_name(table_name)
        hit = self._lookup(name, table_name, 'insert')
        if hit is not None:
            return hit
        table = self.registry.table(table_name)
        cls = _new_class(name)
        required: Dict[str, Any] = {}
        optional: Dict[str, Any] = {}
        for col in writable_columns(table):
            ann = self.mapper.map_column(table_name, col).annotation
            if insert_required(table, col):
                required[col.key] = ann
                setattr(cls, col.key, strawberry.field(name=col.key))
            else:
                optional[col.key] = Optional[ann]
                setattr(cls, col.key, strawberry.field(default=UNSET, name=col.key))
        anns = {**required, **optional}
        if not anns:
            self._placeholder(cls, anns)
        cls.__annotations__ = anns
        return self._remember(name, table_name, 'insert', strawberry.input(cls, name=name))

    def update_type(self, table_name: str) -> Any:
        name = update_input_name(table_name)
        hit = self._lookup(name, table_name, 'update')
        if hit is not None:
            return hit
        table = self.registry.table(table_name)
        cls = _new_class(name)
        anns: Dict[str, Any] = {}
        for col in writable_columns(table):
            anns[col.key] = Optional[self.mapper.map_column(table_name, col).annotation]
            setattr(cls, col.key, strawberry.field(default=UNSET, name=col.key))
        if not anns:
            self._placeholder(cls, anns)
        cls.__annotations__ = anns
        return self._remember(name, table_name, 'update', strawberry.input(cls, name=name))

    @staticmethod
    def _placeholder(cls: Any, anns: Dict[str, Any]) -> None:
        anns[PLACEHOLDER_FIELD] = Optional[bool]
        setattr(cls, PLACEHOLDER_FIELD, strawberry.field(default=UNSET, name=PLACEHOLDER_FIELD,
                                                         description="Placeholder; carries no value"))

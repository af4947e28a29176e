"""Filter grammar and compiler.

A table filter is an object with one entry per column (an operator object)
plus the ``AND``/``OR``/``NOT`` combinators, each taking a list of nested
filters of the same shape::

    {"name": {"ilike": "a%"}, "OR": [{"id": {"lt": 3}}, {"id": {"gt": 10}}]}

Compilation turns that tree into a single SQLAlchemy boolean expression, or
``None`` when the filter places no constraint.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import and_, false, func, not_, or_

from ..errors import ArgumentError
from .result import Err, Ok, Result
from .scalars import PrimitiveTypeMapper, ScalarMapping
from .schema import SchemaRegistry

__all__ = [
    'OPERATOR_REGISTRY',
    'VALUE_OPERATORS',
    'TEXT_OPERATORS',
    'LIST_OPERATORS',
    'FLAG_OPERATORS',
    'COMBINATORS',
    'operators_for',
    'FilterCompiler',
    'compile_filters',
]

OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    'eq': lambda col, v: col == v,
    'ne': lambda col, v: col.is_distinct_from(v),
    'lt': lambda col, v: col < v,
    'lte': lambda col, v: col <= v,
    'gt': lambda col, v: col > v,
    'gte': lambda col, v: col >= v,
    'like': lambda col, v: col.like(v),
    'notLike': lambda col, v: col.not_like(v),
    'ilike': lambda col, v: col.ilike(v),
    'notIlike': lambda col, v: col.not_ilike(v),
    'inArray': lambda col, v: col.in_(v),
    'notInArray': lambda col, v: col.not_in(v),
    'isNull': lambda col, v: col.is_(None),
    'isNotNull': lambda col, v: col.is_not(None),
}

VALUE_OPERATORS: Tuple[str, ...] = ('eq', 'ne', 'lt', 'lte', 'gt', 'gte')
TEXT_OPERATORS: Tuple[str, ...] = ('like', 'notLike', 'ilike', 'notIlike')
LIST_OPERATORS: Tuple[str, ...] = ('inArray', 'notInArray')
FLAG_OPERATORS: Tuple[str, ...] = ('isNull', 'isNotNull')
COMBINATORS: Tuple[str, ...] = ('AND', 'OR', 'NOT')


def operators_for(mapping: ScalarMapping) -> Tuple[str, ...]:
    """Operator names a column of the given representation accepts, in declaration order."""
    if mapping.kind == 'json':
        return FLAG_OPERATORS
    ops = VALUE_OPERATORS
    if mapping.is_text:
        ops = ops + TEXT_OPERATORS
    return ops + LIST_OPERATORS + FLAG_OPERATORS


class FilterCompiler:
    def __init__(self, registry: SchemaRegistry, mapper: PrimitiveTypeMapper):
        self.registry = registry
        self.mapper = mapper

    def compile(self, table_name: str, where: Any, path: str = 'where') -> Result:
        """Compile a filter object against a table.

        Returns ``Ok(expression)``, ``Ok(None)`` for an empty filter, or
        ``Err(ArgumentError)`` naming the offending path.
        """
        if where is None:
            return Ok(None)
        looked_up = self.registry.resolve_table(table_name)
        if not looked_up.is_ok:
            return looked_up
        try:
            return Ok(self._compile_object(table_name, looked_up.value, where, path))
        except ArgumentError as e:
            return Err(e)

    def _compile_object(self, table_name: str, table: Any, where: Any, path: str):
        if not isinstance(where, Mapping):
            raise ArgumentError("Filter must be an object", path)
        clauses: List[Any] = []
        for key, value in where.items():
            if value is None:
                continue
            key_path = f"{path}.{key}"
            if key in COMBINATORS:
                clause = self._compile_combinator(table_name, table, key, value, key_path)
                if clause is not None:
                    clauses.append(clause)
                continue
            col = table.c.get(key)
            if col is None:
                raise ArgumentError(f"Unknown column '{key}' on table '{table_name}'", key_path)
            clauses.extend(self._compile_column(table_name, col, value, key_path))
        if not clauses:
            return None
        return clauses[0] if len(clauses) == 1 else and_(*clauses)

    def _compile_combinator(self, table_name: str, table: Any, key: str, value: Any, path: str):
        if isinstance(value, Mapping):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ArgumentError(f"{key} expects a list of filter objects", path)
        if not value:
            return None
        compiled = [
            self._compile_object(table_name, table, item, f"{path}[{i}]")
            for i, item in enumerate(value)
        ]
        present = [c for c in compiled if c is not None]
        if key == 'AND':
            if not present:
                return None
            return present[0] if len(present) == 1 else and_(*present)
        if key == 'OR':
            # an empty member matches every row, and so does the disjunction
            if len(present) < len(compiled):
                return None
            return present[0] if len(present) == 1 else or_(*present)
        if not present:
            return false()
        # NULL members count as false so the negation keeps rows where they are NULL
        return not_(func.coalesce(present[0] if len(present) == 1 else and_(*present), false()))

    def _compile_column(self, table_name: str, col: Any, ops: Any, path: str) -> List[Any]:
        if not isinstance(ops, Mapping):
            raise ArgumentError(f"Filter for column '{col.key}' must be an operator object", path)
        mapping = self.mapper.map_column(table_name, col)
        allowed = operators_for(mapping)
        out: List[Any] = []
        for op, value in ops.items():
            op_path = f"{path}.{op}"
            if op not in OPERATOR_REGISTRY:
                raise ArgumentError(f"Unknown filter operator '{op}'", op_path)
            if op not in allowed:
                raise ArgumentError(f"Operator '{op}' is not supported for column '{col.key}'", op_path)
            if value is None:
                continue
            if op in FLAG_OPERATORS:
                if not isinstance(value, bool):
                    raise ArgumentError(f"Operator '{op}' expects a boolean", op_path)
                if value:
                    out.append(OPERATOR_REGISTRY[op](col, None))
                continue
            if op in LIST_OPERATORS:
                if not isinstance(value, (list, tuple)):
                    raise ArgumentError(f"Operator '{op}' expects a list", op_path)
                coerced = [self._coerce(mapping, v, f"{op_path}[{i}]") for i, v in enumerate(value)]
                out.append(OPERATOR_REGISTRY[op](col, coerced))
                continue
            if isinstance(value, (list, tuple, Mapping)):
                raise ArgumentError(f"Operator '{op}' expects a single value", op_path)
            if op in TEXT_OPERATORS:
                if not isinstance(value, str):
                    raise ArgumentError(f"Operator '{op}' expects a string pattern", op_path)
                out.append(OPERATOR_REGISTRY[op](col, value))
                continue
            out.append(OPERATOR_REGISTRY[op](col, self._coerce(mapping, value, op_path)))
        return out

    @staticmethod
    def _coerce(mapping: ScalarMapping, value: Any, path: str) -> Any:
        if value is None:
            raise ArgumentError("Null is not allowed here", path)
        try:
            return mapping.deserialize(value)
        except (TypeError, ValueError) as e:
            raise ArgumentError(f"Invalid value: {e}", path) from e


def compile_filters(registry: SchemaRegistry, mapper: PrimitiveTypeMapper, table_name: str,
                    where: Optional[Mapping[str, Any]], path: str = 'where') -> Result:
    """Functional shortcut over ``FilterCompiler.compile``."""
    return FilterCompiler(registry, mapper).compile(table_name, where, path)

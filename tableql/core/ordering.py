from __future__ import annotations

from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

import strawberry

from ..errors import ArgumentError
from .result import Err, Ok, Result
from .schema import SchemaRegistry

__all__ = ['OrderDirection', 'dir_value', 'compile_order_by', 'order_clauses']


class _DirectionEnum(Enum):
    asc = 'asc'
    desc = 'desc'


OrderDirection = strawberry.enum(_DirectionEnum, name="OrderDirection")  # type: ignore


def dir_value(order_dir: Any) -> str:
    if order_dir is None:
        return 'asc'
    val = getattr(order_dir, 'value', order_dir)
    return str(val).lower()


def compile_order_by(registry: SchemaRegistry, table_name: str, order_by: Optional[Mapping[str, Any]],
                     path: str = 'orderBy') -> Result:
    """Compile ``{column: asc|desc}`` into ordered ``(column, direction)`` pairs.

    Pairs follow the table's column declaration order (the order of the
    OrderBy input fields), never the order of keys in the request payload.
    """
    if order_by is None:
        return Ok([])
    looked_up = registry.resolve_table(table_name)
    if not looked_up.is_ok:
        return looked_up
    table = looked_up.value
    if not isinstance(order_by, Mapping):
        return Err(ArgumentError("orderBy must be an object", path))
    requested = {}
    for key, direction in order_by.items():
        if direction is None:
            continue
        if key not in table.c:
            return Err(ArgumentError(f"Unknown column '{key}' on table '{table_name}'", f"{path}.{key}"))
        dv = dir_value(direction)
        if dv not in ('asc', 'desc'):
            return Err(ArgumentError(f"Invalid direction '{direction}'. Use asc or desc", f"{path}.{key}"))
        requested[key] = dv
    pairs: List[Tuple[str, str]] = [(col.key, requested[col.key]) for col in table.columns if col.key in requested]
    return Ok(pairs)


def order_clauses(table: Any, pairs: List[Tuple[str, str]]) -> List[Any]:
    """SQLAlchemy ORDER BY clauses for compiled pairs."""
    out = []
    for col_name, direction in pairs:
        col = table.c[col_name]
        out.append(col.desc() if direction == 'desc' else col.asc())
    return out

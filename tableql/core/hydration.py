from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import ArgumentError
from .scalars import PrimitiveTypeMapper
from .schema import SchemaRegistry
from .selection import Selection

__all__ = ['Remapper']


class Remapper:
    """Shapes executor rows for the generated output types and GraphQL input for the executor."""

    def __init__(self, registry: SchemaRegistry, mapper: PrimitiveTypeMapper):
        self.registry = registry
        self.mapper = mapper

    def remap_row(self, table_name: str, row: Optional[Mapping[str, Any]],
                  selection: Optional[Selection] = None) -> Optional[Dict[str, Any]]:
        """Serialize one row; selected relations default to ``None`` (one) or ``[]`` (many).

        Keys that are not columns of the table (join helpers added by the
        executor) are dropped.
        """
        if row is None:
            return None
        table = self.registry.table(table_name)
        out: Dict[str, Any] = {}
        for col in table.columns:
            if col.key not in row:
                continue
            value = row[col.key]
            out[col.key] = None if value is None else self.mapper.map_column(table_name, col).serialize(value)
        if selection is None:
            return out
        for name, rel_sel in selection.relations.items():
            rel = rel_sel.relation
            value = row.get(name)
            if rel.is_many:
                out[name] = self.remap_rows(rel.target, value or [], rel_sel.selection)
            else:
                out[name] = self.remap_row(rel.target, value, rel_sel.selection) if value is not None else None
        return out

    def remap_rows(self, table_name: str, rows: Iterable[Mapping[str, Any]],
                   selection: Optional[Selection] = None) -> List[Dict[str, Any]]:
        return [self.remap_row(table_name, r, selection) for r in (rows or [])]

    def remap_input(self, table_name: str, values: Mapping[str, Any], path: str = 'values') -> Dict[str, Any]:
        """Deserialize an insert/update input object into column values.

        Unset fields are expected to be gone already; explicit ``None`` is kept.
        """
        table = self.registry.table(table_name)
        out: Dict[str, Any] = {}
        for key, value in values.items():
            col = table.c.get(key)
            if col is None:
                continue
            if value is None:
                out[key] = None
                continue
            try:
                out[key] = self.mapper.map_column(table_name, col).deserialize(value)
            except (TypeError, ValueError) as e:
                raise ArgumentError(f"Invalid value for column '{key}': {e}", f"{path}.{key}") from e
        return out

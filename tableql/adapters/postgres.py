from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert

from .base import BaseAdapter


class PostgresAdapter(BaseAdapter):
    name = 'postgres'
    supports_conflict_skip = True

    def insert(self, table: Any, skip_conflicts: bool = False):
        stmt = pg_insert(table)
        if skip_conflicts:
            stmt = stmt.on_conflict_do_nothing()
        return stmt

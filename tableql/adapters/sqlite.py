from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from .base import BaseAdapter


class SQLiteAdapter(BaseAdapter):
    name = 'sqlite'
    supports_conflict_skip = True

    def insert(self, table: Any, skip_conflicts: bool = False):
        stmt = sqlite_insert(table)
        if skip_conflicts:
            stmt = stmt.on_conflict_do_nothing()
        return stmt

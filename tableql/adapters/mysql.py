from __future__ import annotations

from typing import Any

from sqlalchemy import insert

from .base import BaseAdapter


class MySQLAdapter(BaseAdapter):
    name = 'mysql'
    # no RETURNING: mutations answer with MutationReturn
    supports_returning = False
    supports_conflict_skip = True

    def insert(self, table: Any, skip_conflicts: bool = False):
        stmt = insert(table)
        if skip_conflicts:
            stmt = stmt.prefix_with('IGNORE')
        return stmt

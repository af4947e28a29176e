from __future__ import annotations

from typing import Any

from sqlalchemy import insert


class BaseAdapter:
    name = 'base'
    supports_returning = True
    supports_conflict_skip = False

    @property
    def mutation_mode(self) -> str:
        return 'returning' if self.supports_returning else 'boolean'

    def insert(self, table: Any, skip_conflicts: bool = False):
        """INSERT statement for ``table``; dialects that can ignore conflicting rows do so when asked."""
        return insert(table)

from __future__ import annotations

from .base import BaseAdapter
from .sqlite import SQLiteAdapter
from .postgres import PostgresAdapter
from .mysql import MySQLAdapter


def get_adapter(dialect_name: str | None) -> BaseAdapter:
    dn = (dialect_name or '').lower()
    if dn.startswith('postgres'):
        return PostgresAdapter()
    if dn.startswith('mysql') or dn.startswith('mariadb'):
        return MySQLAdapter()
    if dn.startswith('sqlite'):
        return SQLiteAdapter()
    return BaseAdapter()


__all__ = [
    'BaseAdapter',
    'SQLiteAdapter',
    'PostgresAdapter',
    'MySQLAdapter',
    'get_adapter',
]

from __future__ import annotations

import re

__all__ = [
    'capitalize',
    'uncapitalize',
    'is_graphql_name',
    'select_type_name',
    'item_type_name',
    'relation_type_name',
    'insert_input_name',
    'update_input_name',
    'filters_name',
    'column_filters_name',
    'order_by_name',
    'enum_type_name',
    'operation_names',
]

_GRAPHQL_NAME = re.compile(r'^[_A-Za-z][_0-9A-Za-z]*$')


def capitalize(name: str) -> str:
    if not name:
        return name
    return name[0].upper() + name[1:]


def uncapitalize(name: str) -> str:
    if not name:
        return name
    return name[0].lower() + name[1:]


def is_graphql_name(name: str) -> bool:
    return isinstance(name, str) and bool(_GRAPHQL_NAME.match(name)) and not name.startswith('__')


def select_type_name(table_name: str) -> str:
    return f"{capitalize(table_name)}SelectItem"


def item_type_name(table_name: str) -> str:
    return f"{capitalize(table_name)}Item"


def relation_type_name(table_name: str, remaining: int) -> str:
    """Select type reached through a relation with ``remaining`` further hops allowed."""
    return f"{capitalize(table_name)}Depth{remaining}Relation"


def insert_input_name(table_name: str) -> str:
    return f"{capitalize(table_name)}InsertInput"


def update_input_name(table_name: str) -> str:
    return f"{capitalize(table_name)}UpdateInput"


def filters_name(table_name: str) -> str:
    return f"{capitalize(table_name)}Filters"


def column_filters_name(table_name: str, column_name: str) -> str:
    return f"{capitalize(table_name)}{capitalize(column_name)}Filters"


def order_by_name(table_name: str) -> str:
    return f"{capitalize(table_name)}OrderBy"


def enum_type_name(table_name: str, column_name: str) -> str:
    return f"{capitalize(table_name)}{capitalize(column_name)}Enum"


def operation_names(table_name: str) -> dict[str, str]:
    """Root field names generated for a table, keyed by operation kind."""
    cap = capitalize(table_name)
    low = uncapitalize(table_name)
    return {
        'select_many': low,
        'select_one': f"{low}Single",
        'insert_many': f"insertInto{cap}",
        'insert_one': f"insertInto{cap}Single",
        'update': f"update{cap}",
        'delete': f"deleteFrom{cap}",
    }

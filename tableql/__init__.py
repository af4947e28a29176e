"""TableQL public API and lazy exports.

Turns SQLAlchemy tables plus declared relations into a Strawberry GraphQL
schema with per-table queries (``users``, ``usersSingle``) and mutations
(``insertIntoUsers``, ``insertIntoUsersSingle``, ``updateUsers``,
``deleteFromUsers``).

Exposes:
- TableQLSchema (lazy, from .registry)
- relations, one, many for relation declarations
- the error classes
- Executor, SQLAlchemyExecutor, QueryPlan, RelationPlan (lazy, from .executor)
"""
from __future__ import annotations

from .core.schema import many, one, relations, Relations
from .errors import ArgumentError, ExecutionError, SchemaError, TableQLError


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    if name in {'registry', 'operations', 'executor'}:
        return _importlib.import_module(__name__ + '.' + name)
    if name == 'TableQLSchema':
        return getattr(_importlib.import_module(__name__ + '.registry'), name)
    if name in {'Executor', 'SQLAlchemyExecutor', 'QueryPlan', 'RelationPlan'}:
        return getattr(_importlib.import_module(__name__ + '.executor'), name)
    if name in {'GeneratedEntities', 'MutationReturn'}:
        return getattr(_importlib.import_module(__name__ + '.operations'), name)
    raise AttributeError(name)


__all__ = [
    'TableQLSchema',
    'relations', 'one', 'many', 'Relations',
    'TableQLError', 'SchemaError', 'ArgumentError', 'ExecutionError',
    'Executor', 'SQLAlchemyExecutor', 'QueryPlan', 'RelationPlan',
    'GeneratedEntities', 'MutationReturn',
]

"""Error taxonomy for TableQL and the single translation to GraphQL errors.

- SchemaError: malformed or incomplete schema, raised while generating types.
- ArgumentError: a request argument failed structural validation; raised
  before anything is sent to the executor.
- ExecutionError: the executor rejected a compiled query; wraps the original
  exception and keeps its message.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from graphql import GraphQLError

_logger = logging.getLogger("tableql")

__all__ = [
    'TableQLError',
    'SchemaError',
    'ArgumentError',
    'ExecutionError',
    'to_graphql_error',
]


class TableQLError(Exception):
    """Base class for all TableQL errors."""

    code = 'INTERNAL_SERVER_ERROR'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SchemaError(TableQLError):
    """Raised at generation time when the schema cannot be turned into types."""

    code = 'SCHEMA_ERROR'


class ArgumentError(TableQLError):
    """Raised when a request argument has the wrong shape.

    ``path`` is the dotted location of the offending value inside the
    arguments, e.g. ``where.AND[1].title.eq``.
    """

    code = 'BAD_USER_INPUT'

    def __init__(self, message: str, path: Optional[str] = None):
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)
        self.path = path


class ExecutionError(TableQLError):
    """The executor failed to run a compiled statement."""

    code = 'EXECUTION_ERROR'

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original

    @classmethod
    def wrap(cls, exc: BaseException) -> 'ExecutionError':
        if isinstance(exc, ExecutionError):
            return exc
        # SQLAlchemy DBAPIError carries the driver exception in .orig
        orig = getattr(exc, 'orig', None)
        message = str(orig) if orig is not None else str(exc)
        return cls(message or exc.__class__.__name__, original=exc)


def to_graphql_error(err: BaseException, *, operation: Optional[str] = None) -> GraphQLError:
    """Translate an error into a GraphQLError; the only place this happens."""
    if isinstance(err, GraphQLError):
        return err
    extensions: dict[str, Any] = {}
    if isinstance(err, TableQLError):
        extensions['code'] = err.code
        path = getattr(err, 'path', None)
        if path:
            extensions['argumentPath'] = path
        if isinstance(err, ArgumentError):
            _logger.warning("tableql: %s rejected: %s", operation or 'operation', err.message)
        elif isinstance(err, ExecutionError):
            _logger.error("tableql: %s failed: %s", operation or 'operation', err.message, exc_info=err.original or err)
        return GraphQLError(err.message, original_error=err, extensions=extensions)
    _logger.exception("tableql: unexpected error in %s", operation or 'operation')
    return GraphQLError(str(err) or err.__class__.__name__, original_error=err)

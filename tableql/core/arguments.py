"""Tagged argument types for the generated operations.

Each operation kind receives its own argument dataclass; ``validate()`` checks
the structural shape (pagination bounds, empty payloads) and returns
``Ok(self)`` or ``Err(ArgumentError)`` without touching the database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from ..errors import ArgumentError
from .result import Err, Ok, Result

__all__ = [
    'SelectManyArgs',
    'SelectOneArgs',
    'InsertArgs',
    'UpdateArgs',
    'DeleteArgs',
    'RelationArgs',
    'OperationArgs',
    'check_pagination',
]


def _check_non_negative(name: str, value: Any, path: str) -> Optional[ArgumentError]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        return ArgumentError(f"{name} must be an integer", path)
    if value < 0:
        return ArgumentError(f"{name} must be non-negative", path)
    return None


def check_pagination(offset: Any, limit: Any, prefix: str = '') -> Optional[ArgumentError]:
    """First pagination error found, if any."""
    for name, value in (('offset', offset), ('limit', limit)):
        err = _check_non_negative(name, value, f"{prefix}{name}")
        if err is not None:
            return err
    return None


def _check_object(name: str, value: Any, path: str) -> Optional[ArgumentError]:
    if value is not None and not isinstance(value, Mapping):
        return ArgumentError(f"{name} must be an object", path)
    return None


@dataclass
class SelectManyArgs:
    kind = 'select_many'
    where: Optional[Dict[str, Any]] = None
    order_by: Optional[Dict[str, Any]] = None
    offset: Optional[int] = None
    limit: Optional[int] = None

    def validate(self) -> Result:
        err = (_check_object('where', self.where, 'where')
               or _check_object('orderBy', self.order_by, 'orderBy')
               or check_pagination(self.offset, self.limit))
        return Err(err) if err else Ok(self)


@dataclass
class SelectOneArgs:
    kind = 'select_one'
    where: Optional[Dict[str, Any]] = None
    order_by: Optional[Dict[str, Any]] = None
    offset: Optional[int] = None

    def validate(self) -> Result:
        err = (_check_object('where', self.where, 'where')
               or _check_object('orderBy', self.order_by, 'orderBy')
               or check_pagination(self.offset, None))
        return Err(err) if err else Ok(self)


@dataclass
class InsertArgs:
    kind = 'insert'
    values: List[Dict[str, Any]] = field(default_factory=list)
    single: bool = False

    def validate(self) -> Result:
        if not self.values:
            return Err(ArgumentError("No values were provided!", 'values'))
        for i, row in enumerate(self.values):
            path = 'values' if self.single else f"values[{i}]"
            if not isinstance(row, Mapping):
                return Err(ArgumentError("Each value must be an object", path))
        return Ok(self)


@dataclass
class UpdateArgs:
    kind = 'update'
    set: Dict[str, Any] = field(default_factory=dict)
    where: Optional[Dict[str, Any]] = None

    def validate(self) -> Result:
        if not isinstance(self.set, Mapping):
            return Err(ArgumentError("set must be an object", 'set'))
        if not self.set:
            return Err(ArgumentError("Unable to update with no values specified!", 'set'))
        err = _check_object('where', self.where, 'where')
        return Err(err) if err else Ok(self)


@dataclass
class DeleteArgs:
    kind = 'delete'
    where: Optional[Dict[str, Any]] = None

    def validate(self) -> Result:
        err = _check_object('where', self.where, 'where')
        return Err(err) if err else Ok(self)


@dataclass
class RelationArgs:
    """Arguments given to a relation field inside a selection set.

    ``one`` relations only accept ``where``; ``many`` relations also take
    ``orderBy``, ``offset`` and ``limit``.
    """
    kind = 'relation'
    is_many: bool
    where: Optional[Dict[str, Any]] = None
    order_by: Optional[Dict[str, Any]] = None
    offset: Optional[int] = None
    limit: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], is_many: bool) -> 'RelationArgs':
        return cls(
            is_many=is_many,
            where=raw.get('where'),
            order_by=raw.get('orderBy'),
            offset=raw.get('offset'),
            limit=raw.get('limit'),
        )

    def validate(self, path: str = '') -> Result:
        prefix = f"{path}." if path else ''
        if not self.is_many:
            for name, value in (('orderBy', self.order_by), ('offset', self.offset), ('limit', self.limit)):
                if value is not None:
                    return Err(ArgumentError(f"Argument '{name}' is not allowed on a single relation", prefix + name))
        err = (_check_object('where', self.where, prefix + 'where')
               or _check_object('orderBy', self.order_by, prefix + 'orderBy')
               or check_pagination(self.offset, self.limit, prefix))
        return Err(err) if err else Ok(self)


OperationArgs = Union[SelectManyArgs, SelectOneArgs, InsertArgs, UpdateArgs, DeleteArgs]

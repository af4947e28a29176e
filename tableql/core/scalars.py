"""Primitive type mapper: SQLAlchemy column types -> GraphQL representations.

Every column maps to a ``ScalarMapping`` carrying the Strawberry annotation to
expose and two converters: ``serialize`` (storage value -> GraphQL value) and
``deserialize`` (GraphQL input value -> storage value).
"""
from __future__ import annotations

import base64
import binascii
import re
import uuid as _py_uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import strawberry
from strawberry.scalars import JSON as ST_JSON
from sqlalchemy import Enum as SAEnumType
from sqlalchemy.sql.sqltypes import (
    JSON as SA_JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    Interval,
    LargeBinary,
    Numeric,
    String,
    Time,
    Uuid,
)
from sqlalchemy.types import TypeDecorator

from ..errors import SchemaError
from .naming import enum_type_name

__all__ = ['ScalarMapping', 'PrimitiveTypeMapper']


@dataclass(frozen=True)
class ScalarMapping:
    kind: str
    annotation: Any
    serialize: Callable[[Any], Any]
    deserialize: Callable[[Any], Any]

    @property
    def is_text(self) -> bool:
        """Whether the like/ilike operator family applies."""
        return self.kind == 'string'


def _passthrough(value: Any) -> Any:
    return value


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer, got a boolean")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    return float(value)


def _to_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _to_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"invalid decimal {value!r}")


def _serialize_datetime(value: Any) -> Any:
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    out = value.astimezone(timezone.utc).isoformat(timespec='milliseconds')
    return out.replace('+00:00', 'Z')


def _datetime_parser(timezone_aware: bool) -> Callable[[Any], datetime]:
    def _parse(value: Any) -> datetime:
        if isinstance(value, datetime):
            dv = value
        elif isinstance(value, str):
            s = value.strip()
            if s.endswith('Z') or s.endswith('z'):
                s = s[:-1] + '+00:00'
            dv = datetime.fromisoformat(s)
        else:
            raise ValueError(f"expected an ISO-8601 string, got {value!r}")
        if dv.tzinfo is not None:
            dv = dv.astimezone(timezone.utc)
            if not timezone_aware:
                dv = dv.replace(tzinfo=None)
        elif timezone_aware:
            dv = dv.replace(tzinfo=timezone.utc)
        return dv
    return _parse


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, (date, time)) else value


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(_to_str(value))


def _parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(_to_str(value))


def _serialize_interval(value: Any) -> Any:
    if isinstance(value, timedelta):
        return str(value.total_seconds())
    return value


def _parse_interval(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=float(value))


def _serialize_binary(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode('ascii')
    return value


def _parse_binary(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return base64.b64decode(_to_str(value).encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise ValueError("expected a base64 encoded string")


_ENUM_MEMBER_INVALID = re.compile(r'[^_0-9A-Za-z]')


def _enum_member_name(raw: str) -> str:
    name = _ENUM_MEMBER_INVALID.sub('_', str(raw))
    if not name or name[0].isdigit():
        name = f"_{name}"
    return name


class PrimitiveTypeMapper:
    """Maps columns to ScalarMappings; enum types are cached per column."""

    def __init__(self):
        self._enums: Dict[Tuple[str, str], Any] = {}
        self._cache: Dict[Tuple[str, str], ScalarMapping] = {}

    def map_column(self, table_name: str, column: Any) -> ScalarMapping:
        key = (table_name, column.key)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        mapping = self._map_type(table_name, column, column.type)
        if mapping is None:
            raise SchemaError(
                f"Unsupported column type {type(column.type).__name__} for column '{table_name}.{column.key}'"
            )
        self._cache[key] = mapping
        return mapping

    def _map_type(self, table_name: str, column: Any, sqlatype: Any) -> Optional[ScalarMapping]:
        # Enum before String (Enum subclasses String); BigInteger before Integer
        if isinstance(sqlatype, SAEnumType):
            return self._map_enum(table_name, column, sqlatype)
        if isinstance(sqlatype, Interval):
            return ScalarMapping('interval', str, _serialize_interval, _parse_interval)
        if isinstance(sqlatype, TypeDecorator):
            impl = getattr(sqlatype, 'impl', None)
            if impl is None or impl is sqlatype:
                return None
            return self._map_type(table_name, column, impl)
        if isinstance(sqlatype, Boolean):
            return ScalarMapping('bool', bool, _passthrough, _to_bool)
        if isinstance(sqlatype, BigInteger):
            return ScalarMapping('bigint', str, lambda v: str(int(v)) if v is not None else v, _to_int)
        if isinstance(sqlatype, Integer):
            return ScalarMapping('int', int, lambda v: int(v) if v is not None else v, _to_int)
        if isinstance(sqlatype, Float):
            return ScalarMapping('float', float, lambda v: float(v) if v is not None else v, _to_float)
        if isinstance(sqlatype, Numeric):
            if not getattr(sqlatype, 'asdecimal', True):
                return ScalarMapping('float', float, lambda v: float(v) if v is not None else v, _to_float)
            return ScalarMapping('decimal', str, lambda v: str(v) if v is not None else v, _to_decimal)
        if isinstance(sqlatype, DateTime):
            return ScalarMapping('datetime', str, _serialize_datetime,
                                 _datetime_parser(bool(getattr(sqlatype, 'timezone', False))))
        if isinstance(sqlatype, Date):
            return ScalarMapping('date', str, _iso, _parse_date)
        if isinstance(sqlatype, Time):
            return ScalarMapping('time', str, _iso, _parse_time)
        if isinstance(sqlatype, LargeBinary):
            return ScalarMapping('binary', str, _serialize_binary, _parse_binary)
        if isinstance(sqlatype, SA_JSON):
            return ScalarMapping('json', ST_JSON, _passthrough, _passthrough)
        if isinstance(sqlatype, Uuid):
            as_uuid = bool(getattr(sqlatype, 'as_uuid', True))

            def _parse_uuid(value: Any) -> Any:
                parsed = value if isinstance(value, _py_uuid.UUID) else _py_uuid.UUID(_to_str(value))
                return parsed if as_uuid else str(parsed)
            return ScalarMapping('uuid', str, lambda v: str(v) if v is not None else v, _parse_uuid)
        if isinstance(sqlatype, String):
            return ScalarMapping('string', str, _passthrough, _to_str)
        return None

    def _map_enum(self, table_name: str, column: Any, sqlatype: Any) -> ScalarMapping:
        raw_values = list(getattr(sqlatype, 'enums', None) or [])
        if not raw_values:
            raise SchemaError(f"Enum column '{table_name}.{column.key}' declares no values")
        key = (table_name, column.key)
        st_enum = self._enums.get(key)
        if st_enum is None:
            members: Dict[str, str] = {}
            for raw in raw_values:
                member = _enum_member_name(raw)
                if member in members:
                    raise SchemaError(
                        f"Enum values of '{table_name}.{column.key}' collide after normalization: {member}"
                    )
                members[member] = raw
            name = enum_type_name(table_name, column.key)
            py_enum = Enum(name, members)  # type: ignore[misc]
            st_enum = strawberry.enum(py_enum, name=name)  # type: ignore[arg-type]
            self._enums[key] = st_enum
        by_raw = {m.value: m for m in st_enum}

        def _serialize(value: Any) -> Any:
            if value is None:
                return None
            if isinstance(value, Enum) and not isinstance(value, st_enum):
                # SQLAlchemy Enum with an enum_class stores member names
                value = value.name if value.name in by_raw else value.value
            return by_raw.get(value, value)

        def _deserialize(value: Any) -> Any:
            if isinstance(value, st_enum):
                return value.value
            if isinstance(value, Enum):
                value = value.value
            if value not in by_raw:
                raise ValueError(f"expected one of {sorted(by_raw)}, got {value!r}")
            return value

        return ScalarMapping('enum', st_enum, _serialize, _deserialize)

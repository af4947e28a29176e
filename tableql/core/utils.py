from __future__ import annotations

from dataclasses import fields as _dc_fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from strawberry import UNSET

__all__ = ['input_to_dict', 'get_db_session', 'unique']


def input_to_dict(obj: Any) -> Any:
    """Convert Strawberry input instances (or nested lists/dicts of them) to plain Python values.

    Omitted (UNSET) input fields are dropped; explicit ``None`` is kept.
    Enum members are left as-is so column mappers can resolve them.
    """
    if obj is None or obj is UNSET:
        return obj
    if isinstance(obj, (str, int, float, bool, Enum)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [input_to_dict(x) for x in obj]
    if isinstance(obj, Mapping):
        return {k: input_to_dict(v) for k, v in obj.items() if v is not UNSET}
    if is_dataclass(obj) and not isinstance(obj, type):
        out: Dict[str, Any] = {}
        for f in _dc_fields(obj):
            v = getattr(obj, f.name, UNSET)
            if v is UNSET:
                continue
            out[f.name] = input_to_dict(v)
        return out
    return obj


def get_db_session(info_or_ctx: Any) -> Any | None:
    """Best-effort extraction of an AsyncSession-like object from context.

    Accepts either a Strawberry ``Info`` or a plain context object/dict. Tries
    common keys/attributes in order: ``db_session``, ``db``, ``session``,
    ``async_session``.

    Returns:
        The session object if found; otherwise ``None``.
    """
    if info_or_ctx is None:
        return None
    ctx = getattr(info_or_ctx, 'context', info_or_ctx)
    if ctx is None:
        return None
    candidates = ('db_session', 'db', 'session', 'async_session')
    if isinstance(ctx, Mapping):
        for k in candidates:
            v = ctx.get(k)
            if v is not None:
                return v
        return None
    for k in candidates:
        v = getattr(ctx, k, None)
        if v is not None:
            return v
    return None


def unique(items: Iterable[str]) -> List[str]:
    """Order-preserving de-duplication."""
    seen: set = set()
    out: List[str] = []
    for it in items:
        if it not in seen:
            seen.add(it)
            out.append(it)
    return out

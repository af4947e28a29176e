"""Minimal Ok/Err result type used by the compilers and argument validators."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E', bound=BaseException)

__all__ = ['Ok', 'Err', 'Result', 'collect']


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> 'Ok[U]':
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], 'Result']) -> 'Result':
        return fn(self.value)


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise self.error

    def map(self, fn: Callable[[Any], Any]) -> 'Err[E]':
        return self

    def and_then(self, fn: Callable[[Any], 'Result']) -> 'Err[E]':
        return self


Result = Union[Ok[T], Err[E]]


def collect(results) -> 'Result':
    """Turn an iterable of results into Ok(list) or the first Err."""
    out = []
    for r in results:
        if not r.is_ok:
            return r
        out.append(r.value)
    return Ok(out)

"""
Three-valued logic for filter evaluation.

Truth is a distinct enum, not a bool with a None sentinel, so the connective tables
below are complete and explicit.

Examples
--------
>>> Truth.UNKNOWN.and_(Truth.FALSE)
<Truth.FALSE: 'false'>
>>> Truth.UNKNOWN.or_(Truth.TRUE)
<Truth.TRUE: 'true'>
>>> Truth.UNKNOWN.not_()
<Truth.UNKNOWN: 'unknown'>
"""

from __future__ import annotations

from enum import Enum
from typing import Final

__all__ = ["Truth"]


class Truth(Enum):
    TRUE = "true"
    FALSE = "false"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, value: bool) -> Truth:
        return cls.TRUE if value else cls.FALSE

    def and_(self, other: Truth) -> Truth:
        return _AND[(self, other)]

    def or_(self, other: Truth) -> Truth:
        return _OR[(self, other)]

    def not_(self) -> Truth:
        return _NOT[self]

    def __bool__(self) -> bool:
        # Only TRUE keeps a row.
        return self is Truth.TRUE


_T, _F, _U = Truth.TRUE, Truth.FALSE, Truth.UNKNOWN

_AND: Final[dict[tuple[Truth, Truth], Truth]] = {
    (_T, _T): _T,
    (_T, _F): _F,
    (_T, _U): _U,
    (_F, _T): _F,
    (_F, _F): _F,
    (_F, _U): _F,
    (_U, _T): _U,
    (_U, _F): _F,
    (_U, _U): _U,
}

_OR: Final[dict[tuple[Truth, Truth], Truth]] = {
    (_T, _T): _T,
    (_T, _F): _T,
    (_T, _U): _T,
    (_F, _T): _T,
    (_F, _F): _F,
    (_F, _U): _U,
    (_U, _T): _T,
    (_U, _F): _U,
    (_U, _U): _U,
}

_NOT: Final[dict[Truth, Truth]] = {_T: _F, _F: _T, _U: _U}

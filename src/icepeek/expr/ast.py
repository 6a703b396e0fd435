"""
Filter expression nodes.

Two closed families of frozen dataclasses share the boolean connectives:

- Parsed leaves (Comparison, IsNull, InList) name columns by text and hold lexed literals.
- Bound leaves (BoundComparison, BoundIsNull, BoundInList) reference schema fields and
  hold literals already coerced to the column type.

And / Or / Not wrap either family. ``str(node)`` renders the canonical filter text,
which re-parses to an equivalent expression.

Notes:
    - Consumers branch on node classes with isinstance checks; nodes carry no behaviour
      beyond rendering.
    - Positions are kept for error messages and excluded from equality.
"""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from ..core.types import Field
from .grammar import CompareOp, quote_identifier

__all__ = [
    "LiteralKind",
    "Literal",
    "Column",
    "Comparison",
    "IsNull",
    "InList",
    "BoundRef",
    "BoundComparison",
    "BoundIsNull",
    "BoundInList",
    "Not",
    "And",
    "Or",
    "Expr",
    "render_value",
]


class LiteralKind(Enum):
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"


def _quote_string(s: str) -> str:
    return "'" + s.replace("'", "''") + "'"


@dataclass(frozen=True, slots=True)
class Literal:
    kind: LiteralKind
    value: str | bool
    position: int = field(default=0, compare=False)

    def __str__(self) -> str:
        if self.kind is LiteralKind.BOOLEAN:
            return "TRUE" if self.value else "FALSE"
        if self.kind is LiteralKind.NUMBER:
            return str(self.value)
        return _quote_string(str(self.value))


@dataclass(frozen=True, slots=True)
class Column:
    name: str
    position: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return quote_identifier(self.name)


# ---- parsed leaves --------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Comparison:
    column: Column
    op: CompareOp
    literal: Literal

    def __str__(self) -> str:
        return f"{self.column} {self.op.value} {self.literal}"


@dataclass(frozen=True, slots=True)
class IsNull:
    column: Column
    negated: bool = False

    def __str__(self) -> str:
        return f"{self.column} IS NOT NULL" if self.negated else f"{self.column} IS NULL"


@dataclass(frozen=True, slots=True)
class InList:
    column: Column
    literals: tuple[Literal, ...]

    def __str__(self) -> str:
        return f"{self.column} IN ({', '.join(str(lit) for lit in self.literals)})"


# ---- bound leaves ---------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BoundRef:
    """
    A field of the effective schema.

    Attributes:
        field (Field): Resolved field (its id is the durable identity).
        path (tuple[str, ...]): Names from the top-level field down to this field,
            as named in the effective schema; rows are addressed by this path.
    """

    field: Field
    path: tuple[str, ...]

    @property
    def name(self) -> str:
        return ".".join(self.path)

    @property
    def field_id(self) -> int:
        return self.field.field_id

    def __str__(self) -> str:
        return quote_identifier(self.name)


_NUMBER_TEXT_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")


def render_value(value: Any) -> str:
    """Render a coerced literal value as filter source text."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, Decimal):
            text = format(value, "f")
        elif isinstance(value, float) and not math.isfinite(value):
            return _quote_string(repr(value))
        else:
            text = repr(value)
        # Exponent forms are not number tokens; a quoted string coerces back the same.
        return text if _NUMBER_TEXT_RE.match(text) else _quote_string(text)
    if isinstance(value, (date, datetime, time)):
        return _quote_string(value.isoformat())
    if isinstance(value, uuid.UUID):
        return _quote_string(str(value))
    if isinstance(value, (bytes, bytearray)):
        return _quote_string(bytes(value).decode("utf-8", errors="replace"))
    return _quote_string(str(value))


@dataclass(frozen=True, slots=True)
class BoundComparison:
    ref: BoundRef
    op: CompareOp
    value: Any

    def __str__(self) -> str:
        return f"{self.ref} {self.op.value} {render_value(self.value)}"


@dataclass(frozen=True, slots=True)
class BoundIsNull:
    ref: BoundRef
    negated: bool = False

    def __str__(self) -> str:
        return f"{self.ref} IS NOT NULL" if self.negated else f"{self.ref} IS NULL"


@dataclass(frozen=True, slots=True)
class BoundInList:
    ref: BoundRef
    values: tuple[Any, ...]

    def __str__(self) -> str:
        return f"{self.ref} IN ({', '.join(render_value(v) for v in self.values)})"


# ---- connectives ----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Not:
    child: Expr

    def __str__(self) -> str:
        if isinstance(self.child, (And, Or)):
            return f"NOT ({self.child})"
        return f"NOT {self.child}"


@dataclass(frozen=True, slots=True)
class And:
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"{_operand(self.left)} AND {_operand(self.right)}"


@dataclass(frozen=True, slots=True)
class Or:
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"{self.left} OR {self.right}"


def _operand(node: Expr) -> str:
    # OR binds looser than AND.
    return f"({node})" if isinstance(node, Or) else str(node)


Expr = Union[
    Comparison,
    IsNull,
    InList,
    BoundComparison,
    BoundIsNull,
    BoundInList,
    Not,
    And,
    Or,
]

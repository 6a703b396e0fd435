"""
Row-at-a-time evaluation of bound filter expressions.

Responsibilities
- Evaluate a bound expression against one row with three-valued logic.
- Wrap compile (parse + bind) and evaluation in a reusable Predicate.

Semantics
- A null operand of a comparison or IN yields UNKNOWN; IS [NOT] NULL always yields
  TRUE or FALSE.
- NaN compares FALSE with every literal (not UNKNOWN) and is not null.
- AND / OR short-circuit: the right operand is not evaluated when the left operand
  decides the result.
- Strings compare by code point, which is the byte order of their UTF-8 encoding.
- A row is visible only when the expression is TRUE.

Rows are mappings keyed by the effective schema's top-level field names; nested
struct values are mappings keyed by child names.

Examples
--------
>>> from icepeek.core.schema import Schema
>>> from icepeek.core.types import Field, INT
>>> schema = Schema(0, (Field(1, "age", INT),))
>>> pred = compile_filter("age > 30", schema)
>>> [pred.matches(r) for r in ({"age": 25}, {"age": 35}, {"age": None})]
[False, True, False]
"""

from __future__ import annotations

import math
import operator
import uuid
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Final

from ..core.schema import Schema
from .ast import (
    And,
    BoundComparison,
    BoundInList,
    BoundIsNull,
    BoundRef,
    Expr,
    Not,
    Or,
)
from .binder import bind
from .grammar import CompareOp
from .parser import parse_filter
from .truth import Truth

__all__ = ["evaluate", "Predicate", "compile_filter", "referenced_refs"]

_OPS: Final[dict[CompareOp, Callable[[Any, Any], bool]]] = {
    CompareOp.EQ: operator.eq,
    CompareOp.NE: operator.ne,
    CompareOp.LT: operator.lt,
    CompareOp.LE: operator.le,
    CompareOp.GT: operator.gt,
    CompareOp.GE: operator.ge,
}


def _lookup(row: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    value: Any = row.get(path[0])
    for part in path[1:]:
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


_UNDECODABLE: Final = object()


def _is_nan(v: Any) -> bool:
    return isinstance(v, float) and math.isnan(v)


def _align(value: Any, literal: Any) -> Any:
    # Decoders may hand back representations that differ from the coerced literal.
    if isinstance(literal, datetime) and isinstance(value, datetime):
        if literal.tzinfo is None and value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        if literal.tzinfo is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
    if isinstance(literal, uuid.UUID):
        if isinstance(value, (bytes, bytearray)):
            return uuid.UUID(bytes=bytes(value)) if len(value) == 16 else _UNDECODABLE
        if isinstance(value, str):
            try:
                return uuid.UUID(value)
            except ValueError:
                return _UNDECODABLE
    return value


def _compare(op: CompareOp, value: Any, literal: Any) -> Truth:
    if value is None:
        return Truth.UNKNOWN
    if _is_nan(value) or _is_nan(literal):
        return Truth.FALSE
    aligned = _align(value, literal)
    if aligned is _UNDECODABLE:
        # Not a value of the column type, so it equals nothing and orders against nothing.
        return Truth.of(op is CompareOp.NE)
    return Truth.of(_OPS[op](aligned, literal))


def evaluate(expr: Expr, row: Mapping[str, Any]) -> Truth:
    """
    Evaluate a bound expression against one row.

    Args:
        expr (Expr): Output of icepeek.expr.binder.bind.
        row (Mapping[str, Any]): One materialized row.

    Returns:
        Truth: TRUE, FALSE or UNKNOWN.

    Raises:
        TypeError: If ``expr`` still contains unbound leaves.
    """
    if isinstance(expr, BoundComparison):
        return _compare(expr.op, _lookup(row, expr.ref.path), expr.value)
    if isinstance(expr, BoundIsNull):
        is_null = _lookup(row, expr.ref.path) is None
        return Truth.of(not is_null if expr.negated else is_null)
    if isinstance(expr, BoundInList):
        value = _lookup(row, expr.ref.path)
        if value is None:
            return Truth.UNKNOWN
        if _is_nan(value):
            return Truth.FALSE
        return Truth.of(any(_compare(CompareOp.EQ, value, v) is Truth.TRUE for v in expr.values))
    if isinstance(expr, Not):
        return evaluate(expr.child, row).not_()
    if isinstance(expr, And):
        left = evaluate(expr.left, row)
        if left is Truth.FALSE:
            return left
        return left.and_(evaluate(expr.right, row))
    if isinstance(expr, Or):
        left = evaluate(expr.left, row)
        if left is Truth.TRUE:
            return left
        return left.or_(evaluate(expr.right, row))
    raise TypeError(f"cannot evaluate unbound filter node {type(expr).__name__}")


def referenced_refs(expr: Expr) -> list[BoundRef]:
    """Bound references of ``expr`` in source order (duplicates kept)."""
    if isinstance(expr, (BoundComparison, BoundIsNull, BoundInList)):
        return [expr.ref]
    if isinstance(expr, Not):
        return referenced_refs(expr.child)
    if isinstance(expr, (And, Or)):
        return referenced_refs(expr.left) + referenced_refs(expr.right)
    return []


class Predicate:
    """
    A compiled filter: bound expression plus the schema it was bound to.

    Attributes:
        expr (Expr): Bound expression.
        schema (Schema): Effective schema used for binding.
        source (str): Original filter text.
    """

    def __init__(self, expr: Expr, schema: Schema, source: str = "") -> None:
        self.expr = expr
        self.schema = schema
        self.source = source or str(expr)

    def evaluate(self, row: Mapping[str, Any]) -> Truth:
        return evaluate(self.expr, row)

    def matches(self, row: Mapping[str, Any]) -> bool:
        return self.evaluate(row) is Truth.TRUE

    def mask(self, rows: Iterable[Mapping[str, Any]]) -> list[bool]:
        return [self.matches(r) for r in rows]

    @property
    def referenced_field_ids(self) -> frozenset[int]:
        return frozenset(ref.field_id for ref in referenced_refs(self.expr))

    @property
    def columns(self) -> list[str]:
        """Top-level column names the predicate reads, in first-use order."""
        seen: list[str] = []
        for ref in referenced_refs(self.expr):
            if ref.path[0] not in seen:
                seen.append(ref.path[0])
        return seen

    def __str__(self) -> str:
        return str(self.expr)

    def __repr__(self) -> str:
        return f"Predicate({str(self.expr)!r})"


def compile_filter(text: str | None, schema: Schema) -> Predicate | None:
    """
    Parse and bind ``text`` against ``schema``.

    Args:
        text (str | None): Filter source; None or blank means "no filter".
        schema (Schema): Effective schema of the scan.

    Returns:
        Predicate | None: Compiled predicate, or None when there is no filter.

    Raises:
        FilterSyntaxError, EmptyInList, UnknownColumn, TypeMismatch: Before any
            row is evaluated.
    """
    if text is None or not text.strip():
        return None
    return Predicate(bind(parse_filter(text), schema), schema, text)

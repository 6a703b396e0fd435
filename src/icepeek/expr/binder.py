"""
Bind parsed filter expressions to a schema.

Binding resolves every identifier to a field of the effective schema and coerces
every literal to that field's type. All name and type errors surface here, before
any row is evaluated; a filter either binds completely or raises.
"""

from __future__ import annotations

from ..core.errors import TypeMismatch, UnknownColumn
from ..core.schema import Schema
from ..core.types import coerce_literal, is_nested
from .ast import (
    And,
    BoundComparison,
    BoundInList,
    BoundIsNull,
    BoundRef,
    Column,
    Comparison,
    Expr,
    InList,
    IsNull,
    Literal,
    LiteralKind,
    Not,
    Or,
)

__all__ = ["bind", "bind_column"]


def bind_column(schema: Schema, column: Column) -> BoundRef:
    """
    Resolve a column name (top-level or dotted nested path) against ``schema``.

    Raises:
        UnknownColumn: If no field has that name in ``schema``.
    """
    name = column.name
    top = schema.field_by_name(name)
    if top is not None:
        return BoundRef(top, (name,))
    f = schema.find_field(name)
    if f is None:
        raise UnknownColumn(
            f"unknown column {name!r} at position {column.position}", column=name
        )
    return BoundRef(f, tuple(name.split(".")))


def _coerce(ref: BoundRef, literal: Literal) -> object:
    t = ref.field.field_type
    if is_nested(t):
        raise TypeMismatch(
            f"column {ref.name!r} has nested type {t} and cannot be compared"
            f" (position {literal.position})"
        )
    try:
        return coerce_literal(t, literal.value, number=literal.kind is LiteralKind.NUMBER)
    except TypeMismatch as exc:
        raise TypeMismatch(f"{exc} for column {ref.name!r} at position {literal.position}") from exc


def bind(expr: Expr, schema: Schema) -> Expr:
    """
    Return ``expr`` with every leaf bound to ``schema``.

    Args:
        expr (Expr): Parsed expression (already-bound leaves are kept as is).
        schema (Schema): Effective schema of the scan.

    Returns:
        Expr: Expression built only from bound leaves and connectives.

    Raises:
        UnknownColumn: For an identifier that names no field.
        TypeMismatch: For a literal that has no value of its column's type.
    """
    if isinstance(expr, Comparison):
        ref = bind_column(schema, expr.column)
        return BoundComparison(ref, expr.op, _coerce(ref, expr.literal))
    if isinstance(expr, IsNull):
        return BoundIsNull(bind_column(schema, expr.column), expr.negated)
    if isinstance(expr, InList):
        ref = bind_column(schema, expr.column)
        return BoundInList(ref, tuple(_coerce(ref, lit) for lit in expr.literals))
    if isinstance(expr, Not):
        return Not(bind(expr.child, schema))
    if isinstance(expr, And):
        return And(bind(expr.left, schema), bind(expr.right, schema))
    if isinstance(expr, Or):
        return Or(bind(expr.left, schema), bind(expr.right, schema))
    return expr

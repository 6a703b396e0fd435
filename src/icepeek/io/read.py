"""
Read path: stream a scan plan's rows through an optional filter into a polars frame.

Overview
- iter_visible_rows(): Lazily yields rows for which the predicate is TRUE, stopping
  the row source as soon as ``limit`` rows have been produced.
- read(): Materializes the visible rows into a polars DataFrame plus counters.
- count_visible(): Counts visible rows without materializing them.

Limit semantics
- The limit counts rows that passed the filter; a filtered-out row never takes a slot
  and is never returned. The source is only drained further while fewer than ``limit``
  rows have been produced.

Import DAG discipline
- Depends on stdlib, polars, icepeek.core and icepeek.expr; does not import the CLI.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

import polars as pl

from ..core.errors import UnknownColumn
from ..core.plan import ScanPlan
from ..core.types import DecimalType, FixedType, IcebergType, PrimitiveType, TypeKind
from ..expr.evaluator import Predicate
from .rows import RowSource

__all__ = ["ReadResult", "iter_visible_rows", "read", "count_visible", "polars_dtype"]


@dataclass(frozen=True)
class ReadResult:
    """
    Outcome of one read.

    Attributes:
        frame (pl.DataFrame): Visible rows, output columns only.
        has_more (bool): The limit was reached, so more visible rows may exist.
        rows_scanned (int): Rows pulled from the row source.
        rows_matched (int): Rows that passed the filter (== frame height).
        limit (int | None): Limit in force (None for unlimited).
    """

    frame: pl.DataFrame
    has_more: bool
    rows_scanned: int
    rows_matched: int
    limit: int | None


_PRIMITIVE_DTYPES: dict[TypeKind, Any] = {
    TypeKind.BOOLEAN: pl.Boolean,
    TypeKind.INT: pl.Int32,
    TypeKind.LONG: pl.Int64,
    TypeKind.FLOAT: pl.Float32,
    TypeKind.DOUBLE: pl.Float64,
    TypeKind.DATE: pl.Date,
    TypeKind.TIME: pl.Time,
    TypeKind.TIMESTAMP: pl.Datetime("us"),
    TypeKind.TIMESTAMPTZ: pl.Datetime("us", "UTC"),
    TypeKind.TIMESTAMP_NS: pl.Datetime("ns"),
    TypeKind.TIMESTAMPTZ_NS: pl.Datetime("ns", "UTC"),
    TypeKind.STRING: pl.String,
    TypeKind.UUID: pl.String,
    TypeKind.BINARY: pl.Binary,
}


def polars_dtype(t: IcebergType) -> Any:
    """Polars dtype for a column type; None lets polars infer nested types."""
    if isinstance(t, DecimalType):
        return pl.Decimal(t.precision, t.scale)
    if isinstance(t, FixedType):
        return pl.Binary
    if isinstance(t, PrimitiveType):
        return _PRIMITIVE_DTYPES[t.kind]
    return None


def _output_columns(plan: ScanPlan, columns: Iterable[str] | None) -> list[str]:
    if columns is None:
        return plan.schema.column_names
    out = list(columns)
    for name in out:
        if plan.schema.field_by_name(name) is None:
            raise UnknownColumn(f"unknown column {name!r}", column=name)
    return out


class _Counter:
    __slots__ = ("scanned", "matched", "hit_limit")

    def __init__(self) -> None:
        self.scanned = 0
        self.matched = 0
        self.hit_limit = False


def _visible(
    plan: ScanPlan,
    source: RowSource,
    predicate: Predicate | None,
    limit: int | None,
    needed: list[str],
    counter: _Counter,
) -> Iterator[dict[str, Any]]:
    if limit is not None and limit <= 0:
        counter.hit_limit = bool(plan.tasks)
        return
    for task in plan.tasks:
        stream = source.rows(task, plan.schema, needed)
        try:
            for row in stream:
                counter.scanned += 1
                if predicate is not None and not predicate.matches(row):
                    continue
                counter.matched += 1
                yield row
                if limit is not None and counter.matched >= limit:
                    counter.hit_limit = True
                    return
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()


def iter_visible_rows(
    plan: ScanPlan,
    source: RowSource,
    predicate: Predicate | None = None,
    limit: int | None = None,
    columns: Iterable[str] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Yield rows of ``plan`` for which ``predicate`` is TRUE, at most ``limit`` of them.

    Args:
        plan (ScanPlan): Resolved plan (rows are read file by file in plan order).
        source (RowSource): Row decoder collaborator.
        predicate (Predicate | None): Compiled filter bound to ``plan.schema``.
        limit (int | None): Maximum visible rows; None for all.
        columns (Iterable[str] | None): Columns the caller needs (predicate columns are
            always read as well).

    Yields:
        dict[str, Any]: Visible rows keyed by effective schema names.
    """
    needed = _needed_columns(plan, predicate, columns)
    yield from _visible(plan, source, predicate, limit, needed, _Counter())


def _needed_columns(
    plan: ScanPlan, predicate: Predicate | None, columns: Iterable[str] | None
) -> list[str]:
    needed = _output_columns(plan, columns)
    if predicate is not None:
        needed += [c for c in predicate.columns if c not in needed]
    return needed


def _to_frame(plan: ScanPlan, rows: list[dict[str, Any]], output: list[str]) -> pl.DataFrame:
    series: list[pl.Series] = []
    for name in output:
        f = plan.schema.field_by_name(name)
        if f is None:
            raise UnknownColumn(f"unknown column {name!r}", column=name)
        values = [r.get(name) for r in rows]
        if isinstance(f.field_type, PrimitiveType) and f.field_type.kind is TypeKind.UUID:
            values = [str(v) if isinstance(v, uuid.UUID) else v for v in values]
        dtype = polars_dtype(f.field_type)
        if dtype is None:
            series.append(pl.Series(name, values))
        else:
            series.append(pl.Series(name, values, dtype=dtype))
    return pl.DataFrame(series)


def read(
    plan: ScanPlan,
    source: RowSource,
    predicate: Predicate | None = None,
    columns: Iterable[str] | None = None,
    limit: int | None = None,
) -> ReadResult:
    """
    Materialize visible rows into a polars DataFrame.

    Args:
        plan (ScanPlan): Resolved plan.
        source (RowSource): Row decoder collaborator.
        predicate (Predicate | None): Compiled filter bound to ``plan.schema``.
        columns (Iterable[str] | None): Output columns (default: all top-level fields).
            Columns used only by the predicate are read but not returned.
        limit (int | None): Maximum visible rows; None for all.

    Returns:
        ReadResult: Frame and counters.

    Raises:
        UnknownColumn: If an output column is not in the effective schema.
        IoReadError: From the row source.
    """
    output = _output_columns(plan, columns)
    needed = _needed_columns(plan, predicate, output)
    counter = _Counter()
    rows = list(_visible(plan, source, predicate, limit, needed, counter))
    return ReadResult(
        frame=_to_frame(plan, rows, output),
        has_more=counter.hit_limit,
        rows_scanned=counter.scanned,
        rows_matched=counter.matched,
        limit=limit,
    )


def count_visible(plan: ScanPlan, source: RowSource, predicate: Predicate | None = None) -> int:
    """Number of visible rows; without a predicate this is the plan's record count."""
    if predicate is None:
        return plan.total_records
    counter = _Counter()
    for _ in _visible(plan, source, predicate, None, predicate.columns, counter):
        pass
    return counter.matched

"""
Row sources: turn a ScanTask into a lazy stream of typed rows.

Rows are dicts keyed by the effective schema's top-level field names, in schema order.

Implementations
- ParquetRowSource reads Parquet data files with pyarrow, batch by batch. File columns
  are matched to schema fields by the embedded field id (``PARQUET:field_id``), falling
  back to the column name for files written without ids. A field with no matching
  column yields its ``initial_default`` (or None).
- InMemoryRowSource serves rows registered per file path.

Notes:
    - Streams are forward-only; the read path stops pulling once it has enough rows,
      so unread batches are never decoded.
    - Values of promoted columns are widened on the fly where the Python value changes
      (date -> timestamp); int -> long and float -> double need no conversion.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import UTC, date, datetime
from typing import Any, Protocol

import pyarrow as pa
import pyarrow.parquet as pq

from ..core.plan import ScanTask
from ..core.schema import Schema
from ..core.types import Field, IcebergType, ListType, MapType, PrimitiveType, StructType, TypeKind
from .errors import IoReadError
from .fs import relocate

__all__ = ["RowSource", "ParquetRowSource", "InMemoryRowSource", "column_field_ids"]

logger = logging.getLogger(__name__)

_FIELD_ID_KEY = b"PARQUET:field_id"
_BATCH_SIZE = 1024

Converter = Callable[[Any], Any]


class RowSource(Protocol):
    """Row source collaborator: one lazy, forward-only row stream per file."""

    def rows(
        self, task: ScanTask, schema: Schema, columns: Iterable[str] | None = None
    ) -> Iterator[dict[str, Any]]: ...


def _by_field_id(arrow_fields: Iterable[pa.Field]) -> dict[int, pa.Field]:
    out: dict[int, pa.Field] = {}
    for fld in arrow_fields:
        raw = (fld.metadata or {}).get(_FIELD_ID_KEY)
        if raw is not None:
            out[int(raw)] = fld
    return out


def column_field_ids(arrow_schema: pa.Schema) -> dict[int, str]:
    """Embedded field id -> column name for the top-level columns of a file."""
    return {fid: fld.name for fid, fld in _by_field_id(arrow_schema).items()}


def _match(fields: Iterable[Field], arrow_fields: Iterable[pa.Field]) -> list[tuple[Field, pa.Field | None]]:
    """
    Pair schema fields with file fields by embedded id.

    Names are used only when the file level carries no ids at all; a field with no
    partner is paired with None.
    """
    arrow_fields = list(arrow_fields)
    by_id = _by_field_id(arrow_fields)
    by_name = {fld.name: fld for fld in arrow_fields}
    return [
        (f, by_id.get(f.field_id) if by_id else by_name.get(f.name)) for f in fields
    ]


def _apply(convert: Converter | None, value: Any) -> Any:
    return value if convert is None or value is None else convert(value)


def _struct_children(arrow_type: pa.DataType) -> list[pa.Field]:
    return [arrow_type.field(i) for i in range(arrow_type.num_fields)]


def _converter(t: IcebergType, arrow_type: pa.DataType) -> Converter | None:
    """
    Build a function that re-keys nested values decoded under the file's names.

    Struct children are matched by field id, so a child renamed since the file was
    written shows up under its current name. Returns None when values of ``t`` pass
    through unchanged.
    """
    if isinstance(t, StructType) and pa.types.is_struct(arrow_type):
        parts = [
            (f.name, fld.name if fld is not None else None, f.initial_default,
             _converter(f.field_type, fld.type) if fld is not None else None)
            for f, fld in _match(t.fields, _struct_children(arrow_type))
        ]

        def convert_struct(value: Mapping[str, Any]) -> dict[str, Any]:
            return {
                name: default if src is None else _apply(conv, value.get(src))
                for name, src, default, conv in parts
            }

        return convert_struct
    if isinstance(t, ListType) and (
        pa.types.is_list(arrow_type)
        or pa.types.is_large_list(arrow_type)
        or pa.types.is_fixed_size_list(arrow_type)
    ):
        element = _converter(t.element, arrow_type.value_type)
        if element is None:
            return None
        return lambda value: [_apply(element, v) for v in value]
    if isinstance(t, MapType) and pa.types.is_map(arrow_type):
        key = _converter(t.key, arrow_type.key_type)
        item = _converter(t.value, arrow_type.item_type)
        if key is None and item is None:
            return None
        # pyarrow decodes maps as lists of (key, value) pairs.
        return lambda value: [(_apply(key, k), _apply(item, v)) for k, v in value]
    return None


def _widen(value: Any, f: Field) -> Any:
    t = f.field_type
    if value is None or not isinstance(t, PrimitiveType):
        return value
    if isinstance(value, date) and not isinstance(value, datetime):
        if t.kind in (TypeKind.TIMESTAMP, TypeKind.TIMESTAMP_NS):
            return datetime(value.year, value.month, value.day)
        if t.kind in (TypeKind.TIMESTAMPTZ, TypeKind.TIMESTAMPTZ_NS):
            return datetime(value.year, value.month, value.day, tzinfo=UTC)
    return value


class ParquetRowSource:
    """
    Parquet row source backed by pyarrow.

    Args:
        table_location (str): Table location recorded in metadata.
        local_table_dir (str): Where the table actually lives on this machine.
        batch_size (int): Rows decoded per pyarrow batch.
        allow_remote (bool): Map object-storage locations onto local_table_dir.
    """

    def __init__(
        self,
        table_location: str = "",
        local_table_dir: str = "",
        batch_size: int = _BATCH_SIZE,
        *,
        allow_remote: bool = False,
    ) -> None:
        self.table_location = table_location
        self.local_table_dir = local_table_dir
        self.batch_size = batch_size
        self.allow_remote = allow_remote

    def rows(
        self, task: ScanTask, schema: Schema, columns: Iterable[str] | None = None
    ) -> Iterator[dict[str, Any]]:
        """
        Yield rows of one data file under ``schema``.

        Args:
            task (ScanTask): File to read.
            schema (Schema): Effective schema naming and typing the output.
            columns (Iterable[str] | None): Top-level names to materialize (default all).

        Raises:
            IoReadError: For non-Parquet files or pyarrow decode failures.
        """
        if task.file_format != "PARQUET":
            raise IoReadError(f"unsupported data file format {task.file_format} ({task.file_path})")
        path = relocate(
            task.file_path, self.table_location, self.local_table_dir, allow_remote=self.allow_remote
        )
        wanted = list(columns) if columns is not None else schema.column_names
        fields = [f for f in schema.fields if f.name in set(wanted)]

        try:
            pf = pq.ParquetFile(path)
        except (OSError, pa.ArrowException) as exc:
            raise IoReadError(f"cannot open data file {path}: {exc}") from exc

        mapping: list[tuple[Field, str | None, Converter | None]] = [
            (f, None, None) if fld is None else (f, fld.name, _converter(f.field_type, fld.type))
            for f, fld in _match(fields, pf.schema_arrow)
        ]
        missing = [f.name for f, col, _ in mapping if col is None]
        if missing:
            logger.debug("%s has no column for %s; using defaults", path, missing)
        read_cols = sorted({col for _, col, _ in mapping if col is not None})

        try:
            if not read_cols:
                # Only defaults to emit, one row per record.
                for _ in range(pf.metadata.num_rows):
                    yield {f.name: f.initial_default for f, _, _ in mapping}
                return
            for batch in pf.iter_batches(batch_size=self.batch_size, columns=read_cols):
                for rec in batch.to_pylist():
                    yield {
                        f.name: (
                            _widen(_apply(conv, rec[col]), f) if col is not None else f.initial_default
                        )
                        for f, col, conv in mapping
                    }
        except pa.ArrowException as exc:
            raise IoReadError(f"cannot decode data file {path}: {exc}") from exc


class InMemoryRowSource:
    """
    Row source over rows registered by file path.

    Attributes:
        served (int): Rows handed out so far, across all files.
        opened (list[str]): File paths streamed, in order.
    """

    def __init__(self, files: Mapping[str, list[dict[str, Any]]] | None = None) -> None:
        self.files = dict(files or {})
        self.served = 0
        self.opened: list[str] = []

    def rows(
        self, task: ScanTask, schema: Schema, columns: Iterable[str] | None = None
    ) -> Iterator[dict[str, Any]]:
        if task.file_path not in self.files:
            raise IoReadError(f"no rows registered for {task.file_path}")
        self.opened.append(task.file_path)
        wanted = set(columns) if columns is not None else set(schema.column_names)
        for row in self.files[task.file_path]:
            self.served += 1
            yield {f.name: row.get(f.name) for f in schema.fields if f.name in wanted}

from __future__ import annotations

import json
import struct
from pathlib import Path
from typing import Any

import fastavro
import polars as pl
import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from icepeek.core.errors import SnapshotNotFound, UnknownColumn
from icepeek.io.config import InspectorSettings
from icepeek.io.errors import IoConfigError
from icepeek.io.table import Table

_KV_LONG = {
    "type": "record",
    "name": "k_v_long",
    "fields": [{"name": "key", "type": "int"}, {"name": "value", "type": "long"}],
}
_KV_BYTES = {
    "type": "record",
    "name": "k_v_bytes",
    "fields": [{"name": "key", "type": "int"}, {"name": "value", "type": "bytes"}],
}

MANIFEST_LIST_SCHEMA = fastavro.parse_schema(
    {
        "type": "record",
        "name": "manifest_file",
        "fields": [
            {"name": "manifest_path", "type": "string"},
            {"name": "manifest_length", "type": "long"},
            {"name": "partition_spec_id", "type": "int"},
            {"name": "content", "type": "int"},
            {"name": "sequence_number", "type": "long"},
            {"name": "min_sequence_number", "type": "long"},
            {"name": "added_snapshot_id", "type": "long"},
            {"name": "added_files_count", "type": "int"},
            {"name": "existing_files_count", "type": "int"},
            {"name": "deleted_files_count", "type": "int"},
        ],
    }
)

MANIFEST_SCHEMA = fastavro.parse_schema(
    {
        "type": "record",
        "name": "manifest_entry",
        "fields": [
            {"name": "status", "type": "int"},
            {"name": "snapshot_id", "type": ["null", "long"]},
            {
                "name": "data_file",
                "type": {
                    "type": "record",
                    "name": "r2",
                    "fields": [
                        {"name": "content", "type": "int"},
                        {"name": "file_path", "type": "string"},
                        {"name": "file_format", "type": "string"},
                        {
                            "name": "partition",
                            "type": {
                                "type": "record",
                                "name": "r102",
                                "fields": [{"name": "city", "type": ["null", "string"]}],
                            },
                        },
                        {"name": "record_count", "type": "long"},
                        {"name": "file_size_in_bytes", "type": "long"},
                        {"name": "value_counts", "type": ["null", {"type": "array", "items": _KV_LONG}]},
                        {"name": "lower_bounds", "type": ["null", {"type": "array", "items": _KV_BYTES}]},
                        {"name": "upper_bounds", "type": ["null", {"type": "array", "items": "k_v_bytes"}]},
                    ],
                },
            },
        ],
    }
)


def _fid(name: str, typ: pa.DataType, field_id: int, nullable: bool = True) -> pa.Field:
    return pa.field(name, typ, nullable=nullable, metadata={"PARQUET:field_id": str(field_id)})


def _write_avro(path: Path, schema: Any, records: list[dict[str, Any]]) -> None:
    with path.open("wb") as fh:
        fastavro.writer(fh, schema, records)


def _data_file(location: str, name: str, city: str, records: int, amount_bounds: tuple[int, int]) -> dict[str, Any]:
    lo, hi = amount_bounds
    return {
        "content": 0,
        "file_path": f"{location}/data/{name}",
        "file_format": "PARQUET",
        "partition": {"city": city},
        "record_count": records,
        "file_size_in_bytes": 512,
        "value_counts": [{"key": 1, "value": records}, {"key": 2, "value": records}],
        "lower_bounds": [{"key": 2, "value": struct.pack("<i", lo)}],
        "upper_bounds": [{"key": 2, "value": struct.pack("<i", hi)}],
    }


def write_table(root: Path, location: str) -> Path:
    """Two snapshots on disk: amt(int) renamed to amount(long) and age added in between."""
    table = root / "events"
    (table / "metadata").mkdir(parents=True)
    (table / "data").mkdir()

    pq.write_table(
        pa.Table.from_pylist(
            [
                {"id": 1, "amt": 5, "city": "NYC"},
                {"id": 2, "amt": 40, "city": "NYC"},
                {"id": 3, "amt": None, "city": "NYC"},
            ],
            schema=pa.schema(
                [
                    _fid("id", pa.int64(), 1, nullable=False),
                    _fid("amt", pa.int32(), 2),
                    _fid("city", pa.string(), 3),
                ]
            ),
        ),
        table / "data" / "a.parquet",
    )
    pq.write_table(
        pa.Table.from_pylist(
            [{"id": 4, "amount": 12, "city": "LA", "age": 41}, {"id": 5, "amount": 7, "city": "LA", "age": None}],
            schema=pa.schema(
                [
                    _fid("id", pa.int64(), 1, nullable=False),
                    _fid("amount", pa.int64(), 2),
                    _fid("city", pa.string(), 3),
                    _fid("age", pa.int32(), 4),
                ]
            ),
        ),
        table / "data" / "b.parquet",
    )

    meta = table / "metadata"
    _write_avro(
        meta / "m1.avro",
        MANIFEST_SCHEMA,
        [{"status": 1, "snapshot_id": 1, "data_file": _data_file(location, "a.parquet", "NYC", 3, (5, 40))}],
    )
    _write_avro(
        meta / "m2.avro",
        MANIFEST_SCHEMA,
        [{"status": 1, "snapshot_id": 2, "data_file": _data_file(location, "b.parquet", "LA", 2, (7, 12))}],
    )

    def list_entry(name: str, snapshot_id: int) -> dict[str, Any]:
        return {
            "manifest_path": f"{location}/metadata/{name}",
            "manifest_length": 1024,
            "partition_spec_id": 0,
            "content": 0,
            "sequence_number": snapshot_id,
            "min_sequence_number": snapshot_id,
            "added_snapshot_id": snapshot_id,
            "added_files_count": 1,
            "existing_files_count": 0,
            "deleted_files_count": 0,
        }

    _write_avro(meta / "snap-1.avro", MANIFEST_LIST_SCHEMA, [list_entry("m1.avro", 1)])
    _write_avro(meta / "snap-2.avro", MANIFEST_LIST_SCHEMA, [list_entry("m1.avro", 1), list_entry("m2.avro", 2)])

    schema_0 = {
        "type": "struct",
        "schema-id": 0,
        "fields": [
            {"id": 1, "name": "id", "required": True, "type": "long"},
            {"id": 2, "name": "amt", "required": False, "type": "int"},
            {"id": 3, "name": "city", "required": False, "type": "string"},
        ],
    }
    schema_1 = {
        "type": "struct",
        "schema-id": 1,
        "fields": [
            {"id": 1, "name": "id", "required": True, "type": "long"},
            {"id": 2, "name": "amount", "required": False, "type": "long"},
            {"id": 3, "name": "city", "required": False, "type": "string"},
            {"id": 4, "name": "age", "required": False, "type": "int", "initial-default": 18},
        ],
    }

    def snapshot(sid: int, parent: int | None, schema_id: int) -> dict[str, Any]:
        return {
            "snapshot-id": sid,
            "parent-snapshot-id": parent,
            "sequence-number": sid,
            "timestamp-ms": 1_700_000_000_000 + sid * 1000,
            "schema-id": schema_id,
            "manifest-list": f"{location}/metadata/snap-{sid}.avro",
            "summary": {"operation": "append", "added-records": "3" if sid == 1 else "2"},
        }

    base = {
        "format-version": 2,
        "table-uuid": "5f0e4c4e-0000-4000-8000-000000000001",
        "location": location,
        "last-sequence-number": 2,
        "last-updated-ms": 1_700_000_002_000,
        "default-spec-id": 0,
        "partition-specs": [
            {"spec-id": 0, "fields": [{"source-id": 3, "field-id": 1000, "name": "city", "transform": "identity"}]}
        ],
        "properties": {"owner": "analytics"},
    }
    v1 = {**base, "current-schema-id": 0, "schemas": [schema_0], "current-snapshot-id": 1,
          "snapshots": [snapshot(1, None, 0)]}
    v2 = {**base, "current-schema-id": 1, "schemas": [schema_0, schema_1], "current-snapshot-id": 2,
          "snapshots": [snapshot(1, None, 0), snapshot(2, 1, 1)]}
    (meta / "v1.metadata.json").write_text(json.dumps(v1))
    (meta / "v2.metadata.json").write_text(json.dumps(v2))
    (meta / "version-hint.text").write_text("2\n")
    return table


@pytest.fixture
def table(tmp_path: Path) -> Table:
    # Metadata records the location the table was written to, not where it lives now.
    path = write_table(tmp_path, "/lake/warehouse/events")
    return Table.load(str(path), InspectorSettings(page_size=100))


def test_load_uses_version_hint(table: Table) -> None:
    assert table.metadata_file.endswith("v2.metadata.json")
    assert table.metadata.current_snapshot_id == 2


def test_history_frame(table: Table) -> None:
    h = table.history()
    assert h["snapshot_id"].to_list() == [1, 2]
    assert h["parent_id"].to_list() == [None, 1]
    assert h["schema_id"].to_list() == [0, 1]
    assert h["added_records"].to_list() == [3, 2]
    assert h["is_current"].to_list() == [False, True]
    assert h.schema["committed_at"] == pl.Datetime("us", "UTC")


def test_current_read_maps_columns_by_field_id(table: Table) -> None:
    result = table.read()
    frame = result.frame
    assert frame.columns == ["id", "amount", "city", "age"]
    assert frame.schema["amount"] == pl.Int64
    assert frame["id"].to_list() == [1, 2, 3, 4, 5]
    # Old file stored the column as "amt".
    assert frame["amount"].to_list() == [5, 40, None, 12, 7]
    # Rows written before "age" existed take its initial default.
    assert frame["age"].to_list() == [18, 18, 18, 41, None]
    assert not result.has_more


def test_filter_on_renamed_column_matches_old_files(table: Table) -> None:
    result = table.read(filter="amount > 10", columns=["id"])
    assert result.frame.columns == ["id"]
    assert result.frame["id"].to_list() == [2, 4]
    assert result.rows_scanned == 5


def test_historical_snapshot_uses_old_names(table: Table) -> None:
    frame = table.read(1, filter="amt >= 5").frame
    assert frame.columns == ["id", "amt", "city"]
    assert frame["amt"].to_list() == [5, 40]
    with pytest.raises(UnknownColumn):
        table.read(1, filter="amount > 1")


def test_column_stats_are_named_by_effective_schema(table: Table) -> None:
    stats = table.column_stats()
    a = stats.filter(pl.col("file_path").str.ends_with("a.parquet"))
    assert sorted(a["column"].to_list()) == ["amount", "id"]
    row = a.filter(pl.col("column") == "amount").row(0, named=True)
    assert (row["lower"], row["upper"], row["value_count"]) == ("5", "40", 3)

    old = table.column_stats(1)
    assert sorted(old["column"].to_list()) == ["amt", "id"]


def test_files_and_partitions(table: Table) -> None:
    files = table.files()
    assert files["partition"].to_list() == ["city=NYC", "city=LA"]
    assert files["status"].to_list() == ["added", "added"]
    assert files["record_count"].sum() == 5


def test_limit_and_count(table: Table) -> None:
    result = table.read(limit=2)
    assert result.frame.height == 2
    assert result.has_more
    assert table.count() == 5
    assert table.count(filter="city = 'LA'") == 2


def test_schema_views(table: Table) -> None:
    assert table.schema().column_names == ["id", "amount", "city", "age"]
    assert table.schema(1).column_names == ["id", "amt", "city"]
    assert table.schema_diff(0, 1).renamed == (("amt", "amount"),)
    assert table.properties() == {"owner": "analytics"}
    with pytest.raises(SnapshotNotFound):
        table.schema(99)


def test_remote_location_needs_allow_remote(tmp_path: Path) -> None:
    path = write_table(tmp_path, "s3://lake/warehouse/events")
    strict = Table.load(str(path), InspectorSettings())
    with pytest.raises(IoConfigError, match="object-storage"):
        strict.read()

    relaxed = Table.load(str(path), InspectorSettings(allow_remote=True))
    assert relaxed.count(filter="amount > 10") == 2

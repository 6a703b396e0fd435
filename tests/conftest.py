from __future__ import annotations

import copy
import struct
from typing import Any

import pytest

from icepeek.core.metadata import TableMetadata
from icepeek.io.config import InspectorSettings
from icepeek.io.manifests import InMemoryManifestSource
from icepeek.io.rows import InMemoryRowSource
from icepeek.io.table import Table

LOCATION = "/warehouse/db/events"

SCHEMA_0 = {
    "type": "struct",
    "schema-id": 0,
    "identifier-field-ids": [1],
    "fields": [
        {"id": 1, "name": "id", "required": True, "type": "long"},
        {"id": 2, "name": "amt", "required": False, "type": "int"},
        {"id": 3, "name": "city", "required": False, "type": "string"},
        {"id": 4, "name": "status", "required": False, "type": "string"},
    ],
}

# amt renamed to amount and widened to long; age added.
SCHEMA_1 = {
    "type": "struct",
    "schema-id": 1,
    "identifier-field-ids": [1],
    "fields": [
        {"id": 1, "name": "id", "required": True, "type": "long"},
        {"id": 2, "name": "amount", "required": False, "type": "long"},
        {"id": 3, "name": "city", "required": False, "type": "string"},
        {"id": 4, "name": "status", "required": False, "type": "string"},
        {"id": 5, "name": "age", "required": False, "type": "int"},
    ],
}


def _snapshot(sid: int, parent: int | None, seq: int, ts: int, schema_id: int, **summary: Any) -> dict:
    return {
        "snapshot-id": sid,
        "parent-snapshot-id": parent,
        "sequence-number": seq,
        "timestamp-ms": ts,
        "schema-id": schema_id,
        "manifest-list": f"{LOCATION}/metadata/snap-{sid}.avro",
        "summary": {"operation": "append", **summary},
    }


def build_table_doc() -> dict[str, Any]:
    """Three-snapshot v2 table: append, append after a rename, overwrite."""
    return {
        "format-version": 2,
        "table-uuid": "9c12d441-03fe-4693-9a96-a0705ddf69c1",
        "location": LOCATION,
        "last-sequence-number": 3,
        "last-updated-ms": 3000,
        "last-column-id": 5,
        "current-schema-id": 1,
        "schemas": [SCHEMA_0, SCHEMA_1],
        "default-spec-id": 1,
        "partition-specs": [
            {"spec-id": 0, "fields": [{"source-id": 3, "field-id": 1000, "name": "city", "transform": "identity"}]},
            {"spec-id": 1, "fields": [{"source-id": 4, "field-id": 1001, "name": "status_bucket", "transform": "bucket[4]"}]},
        ],
        "last-partition-id": 1001,
        "default-sort-order-id": 0,
        "sort-orders": [{"order-id": 0, "fields": []}],
        "properties": {"write.format.default": "parquet", "owner": "analytics"},
        "current-snapshot-id": 300,
        "snapshots": [
            _snapshot(100, None, 1, 1000, 0, **{"added-records": 3, "total-records": 3}),
            _snapshot(200, 100, 2, 2000, 1, **{"added-records": 2, "total-records": 5}),
            {
                **_snapshot(300, 200, 3, 3000, 1, **{"added-records": 1, "deleted-records": 3}),
                "summary": {"operation": "overwrite", "added-records": "1", "deleted-records": "3"},
            },
        ],
        "snapshot-log": [
            {"snapshot-id": 100, "timestamp-ms": 1000},
            {"snapshot-id": 200, "timestamp-ms": 2000},
            {"snapshot-id": 300, "timestamp-ms": 3000},
        ],
        "refs": {
            "main": {"snapshot-id": 300, "type": "branch"},
            "v1": {"snapshot-id": 100, "type": "tag"},
        },
    }


def _int_bound(v: int) -> bytes:
    return struct.pack("<i", v)


def _data_file(path: str, partition: dict[str, Any], records: int, **extra: Any) -> dict[str, Any]:
    return {
        "content": 0,
        "file_path": f"{LOCATION}/data/{path}",
        "file_format": "PARQUET",
        "partition": partition,
        "record_count": records,
        "file_size_in_bytes": 1024 * records,
        **extra,
    }


FILE_A = _data_file(
    "a.parquet",
    {"city": "NYC"},
    3,
    value_counts={1: 3, 2: 3},
    null_value_counts={1: 0, 2: 1},
    lower_bounds={2: _int_bound(5)},
    upper_bounds={2: _int_bound(40)},
)
FILE_B = _data_file("b.parquet", {"status_bucket": 2}, 2)
FILE_C = _data_file("c.parquet", {"status_bucket": 0}, 1)
DELETE_FILE = {**_data_file("d-deletes.parquet", {"status_bucket": 0}, 1), "content": 1}


def _list_entry(path: str, spec_id: int, content: int = 0) -> dict[str, Any]:
    return {
        "manifest_path": f"{LOCATION}/metadata/{path}",
        "manifest_length": 4096,
        "partition_spec_id": spec_id,
        "content": content,
        "added_snapshot_id": 1,
    }


def _entry(status: int, snapshot_id: int, data_file: dict[str, Any]) -> dict[str, Any]:
    return {"status": status, "snapshot_id": snapshot_id, "data_file": data_file}


def build_manifests() -> InMemoryManifestSource:
    m = f"{LOCATION}/metadata"
    return InMemoryManifestSource(
        manifest_lists={
            f"{m}/snap-100.avro": [_list_entry("m-a1.avro", 0)],
            f"{m}/snap-200.avro": [_list_entry("m-a2.avro", 0), _list_entry("m-b1.avro", 1)],
            f"{m}/snap-300.avro": [
                _list_entry("m-a3.avro", 0),
                _list_entry("m-b2.avro", 1),
                _list_entry("m-c1.avro", 1),
                _list_entry("m-d1.avro", 1, content=1),
            ],
        },
        manifests={
            f"{m}/m-a1.avro": [_entry(1, 100, FILE_A)],
            f"{m}/m-a2.avro": [_entry(0, 100, FILE_A)],
            f"{m}/m-b1.avro": [_entry(1, 200, FILE_B)],
            f"{m}/m-a3.avro": [_entry(2, 300, FILE_A)],
            f"{m}/m-b2.avro": [_entry(0, 200, FILE_B)],
            f"{m}/m-c1.avro": [_entry(1, 300, FILE_C)],
            f"{m}/m-d1.avro": [_entry(1, 300, DELETE_FILE)],
        },
    )


ROWS = {
    f"{LOCATION}/data/a.parquet": [
        {"id": 1, "amount": 5, "city": "NYC", "status": "active", "age": 25},
        {"id": 2, "amount": 40, "city": "NYC", "status": "inactive", "age": 35},
        {"id": 3, "amount": None, "city": "NYC", "status": "active", "age": None},
    ],
    f"{LOCATION}/data/b.parquet": [
        {"id": 4, "amount": 12, "city": "LA", "status": "active", "age": 41},
        {"id": 5, "amount": 7, "city": "SF", "status": "active", "age": 52},
    ],
    f"{LOCATION}/data/c.parquet": [
        {"id": 6, "amount": 99, "city": "LA", "status": "inactive", "age": 30},
    ],
}


@pytest.fixture
def table_doc() -> dict[str, Any]:
    return copy.deepcopy(build_table_doc())


@pytest.fixture
def metadata(table_doc: dict[str, Any]) -> TableMetadata:
    return TableMetadata.from_json_obj(table_doc)


@pytest.fixture
def manifests() -> InMemoryManifestSource:
    return build_manifests()


@pytest.fixture
def rows() -> InMemoryRowSource:
    return InMemoryRowSource(copy.deepcopy(ROWS))


@pytest.fixture
def events_table(
    metadata: TableMetadata, manifests: InMemoryManifestSource, rows: InMemoryRowSource
) -> Table:
    return Table(metadata, manifests, rows, InspectorSettings(page_size=100))

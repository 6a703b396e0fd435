import pytest

from icepeek.core.errors import MetadataCorrupt, SnapshotNotFound
from icepeek.core.metadata import DataFile, ManifestEntry, TableMetadata, parse_manifest, parse_manifest_list


def test_load_indexes_entities(metadata: TableMetadata) -> None:
    assert metadata.format_version == 2
    assert metadata.current_snapshot().snapshot_id == 300
    assert metadata.snapshot_by_id(100).operation == "append"
    assert metadata.snapshot_by_id(300).summary_int("deleted-records") == 3
    assert metadata.manifest_list_for(metadata.snapshot_by_id(200)).endswith("snap-200.avro")
    assert metadata.current_schema().schema_id == 1
    assert metadata.schema_for_snapshot(metadata.snapshot_by_id(100)).column_names == [
        "id",
        "amt",
        "city",
        "status",
    ]
    assert str(metadata.default_spec()) == "spec 1: status_bucket=bucket[4](4)"
    assert metadata.sort_order_by_id(0).fields == ()
    assert metadata.properties["owner"] == "analytics"


def test_unknown_snapshot_id(metadata: TableMetadata) -> None:
    with pytest.raises(SnapshotNotFound, match="snapshot 7 not found") as ei:
        metadata.snapshot_by_id(7)
    assert ei.value.snapshot_id == 7


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda d: d["snapshots"][0].update({"schema-id": 9}), "references unknown schema 9"),
        (lambda d: d.update({"current-schema-id": 5}), "current-schema-id 5"),
        (lambda d: d.update({"current-snapshot-id": 999}), "current-snapshot-id 999"),
        (lambda d: d.update({"default-spec-id": 4}), "default-spec-id 4"),
        (lambda d: d["refs"].update({"dev": {"snapshot-id": 404}}), "ref 'dev'"),
        (lambda d: d["snapshots"][1].pop("manifest-list"), "has no manifest list"),
        (lambda d: d["snapshots"].append(dict(d["snapshots"][0])), "duplicate snapshot id 100"),
        (lambda d: d.update({"format-version": 9}), "unsupported format-version 9"),
        (lambda d: d["snapshots"][0].pop("timestamp-ms"), "malformed table metadata"),
    ],
)
def test_broken_cross_references_are_surfaced(table_doc, mutate, message: str) -> None:
    mutate(table_doc)
    with pytest.raises(MetadataCorrupt, match=message):
        TableMetadata.from_json_obj(table_doc)


def test_v1_single_schema_and_spec_are_normalised() -> None:
    md = TableMetadata.from_json_obj(
        {
            "format-version": 1,
            "table-uuid": "u",
            "location": "/t",
            "last-updated-ms": 10,
            "schema": {"type": "struct", "fields": [{"id": 1, "name": "x", "required": False, "type": "int"}]},
            "partition-spec": [{"source-id": 1, "name": "x", "transform": "identity"}],
            "current-snapshot-id": 5,
            "snapshots": [{"snapshot-id": 5, "timestamp-ms": 10, "manifests": ["/t/metadata/m1.avro"]}],
        }
    )
    assert md.current_schema_id == 0
    assert md.snapshot_by_id(5).schema_id == 0
    assert md.snapshot_by_id(5).manifests == ("/t/metadata/m1.avro",)
    assert md.manifest_list_for(md.snapshot_by_id(5)) is None
    assert md.default_spec().fields[0].name == "x"
    assert md.last_sequence_number == 0


def test_empty_table_has_no_current_snapshot(table_doc) -> None:
    table_doc.update({"current-snapshot-id": -1, "snapshots": [], "snapshot-log": [], "refs": {}})
    md = TableMetadata.from_json_obj(table_doc)
    assert md.current_snapshot() is None
    with pytest.raises(SnapshotNotFound):
        md.snapshot_for_ref("main")


def test_refs_and_main_fallback(metadata: TableMetadata, table_doc) -> None:
    assert metadata.snapshot_for_ref("v1").snapshot_id == 100
    assert metadata.snapshot_for_ref("main").snapshot_id == 300
    with pytest.raises(SnapshotNotFound, match="ref 'nope'"):
        metadata.snapshot_for_ref("nope")

    table_doc["refs"] = {}
    md = TableMetadata.from_json_obj(table_doc)
    assert md.snapshot_for_ref("main").snapshot_id == 300


@pytest.mark.parametrize("ts, expected", [(1000, 100), (1999, 100), (2000, 200), (10_000, 300)])
def test_snapshot_as_of(metadata: TableMetadata, ts: int, expected: int) -> None:
    assert metadata.snapshot_as_of(ts).snapshot_id == expected


def test_snapshot_as_of_before_first_commit(metadata: TableMetadata) -> None:
    with pytest.raises(SnapshotNotFound, match="no snapshot at or before"):
        metadata.snapshot_as_of(999)


def test_snapshot_as_of_follows_rollback_in_log(table_doc) -> None:
    # Rolled back to 100 at t=2500.
    table_doc["snapshot-log"].insert(2, {"snapshot-id": 100, "timestamp-ms": 2500})
    md = TableMetadata.from_json_obj(table_doc)
    assert md.snapshot_as_of(2700).snapshot_id == 100


def test_snapshots_by_time(metadata: TableMetadata) -> None:
    assert [s.snapshot_id for s in metadata.snapshots_by_time()] == [100, 200, 300]


def test_manifest_records_validate() -> None:
    (entry,) = parse_manifest_list(
        [{"manifest_path": "/m.avro", "partition_spec_id": 1, "added_data_files_count": 4}]
    )
    assert entry.added_files_count == 4
    assert entry.is_data

    (me,) = parse_manifest(
        [
            {
                "status": 1,
                "snapshot_id": 3,
                "data_file": {
                    "file_path": "/d.parquet",
                    "file_format": "parquet",
                    "record_count": 10,
                    "value_counts": [{"key": 1, "value": 10}],
                },
            }
        ]
    )
    assert isinstance(me, ManifestEntry)
    assert me.status_name == "added" and me.is_alive
    assert me.data_file.file_format == "PARQUET"
    assert me.data_file.value_counts == {1: 10}


def test_manifest_entry_with_unknown_status_is_corrupt() -> None:
    with pytest.raises(MetadataCorrupt, match="malformed manifest"):
        parse_manifest([{"status": 7, "data_file": {"file_path": "/d", "record_count": 1}}])


def test_data_file_format_ordinal() -> None:
    assert DataFile(file_path="/x", record_count=1, file_format=2).file_format == "PARQUET"


@pytest.mark.parametrize(
    "key, value, message",
    [
        ("current-snapshot-id", "abc", "current-snapshot-id must be an integer"),
        ("current-schema-id", "x", "current-schema-id must be an integer"),
        ("last-updated-ms", None, "last-updated-ms must be an integer"),
        ("default-spec-id", [1], "default-spec-id must be an integer"),
        ("properties", ["a"], "properties must be an object"),
        ("refs", "main", "refs must be an object"),
        ("snapshots", {"snapshot-id": 1}, "snapshots must be a list"),
        ("schemas", 7, "schemas must be a list"),
    ],
)
def test_malformed_top_level_values_are_corrupt(table_doc, key: str, value, message: str) -> None:
    table_doc[key] = value
    with pytest.raises(MetadataCorrupt, match=message):
        TableMetadata.from_json_obj(table_doc)


@pytest.mark.parametrize(
    "update",
    [{"schema-id": "one"}, {"identifier-field-ids": ["x"]}, {"identifier-field-ids": 5}],
)
def test_malformed_schema_header_is_corrupt(table_doc, update: dict) -> None:
    table_doc["schemas"][0].update(update)
    with pytest.raises(MetadataCorrupt, match="malformed schema-id or identifier-field-ids"):
        TableMetadata.from_json_obj(table_doc)


def test_snapshot_without_schema_id_reads_with_current_schema(metadata: TableMetadata) -> None:
    bare = metadata.snapshot_by_id(100).model_copy(update={"schema_id": None})
    assert metadata.schema_for_snapshot(bare).schema_id == metadata.current_schema_id

from __future__ import annotations

from icepeek.core.metadata import SortOrder
from icepeek.io.table import Table


def test_manifest_list_of_current_snapshot(events_table: Table) -> None:
    frame = events_table.manifest_list()
    names = [p.rsplit("/", 1)[-1] for p in frame["manifest_path"].to_list()]
    assert names == ["m-a3.avro", "m-b2.avro", "m-c1.avro", "m-d1.avro"]
    assert frame["content"].to_list() == ["data", "data", "data", "deletes"]
    assert frame["spec_id"].to_list() == [0, 1, 1, 1]
    assert frame["added_snapshot_id"].to_list() == [1, 1, 1, 1]
    assert frame["added_files"].null_count() == 4


def test_manifest_list_of_older_snapshot(events_table: Table) -> None:
    frame = events_table.manifest_list(100)
    assert frame.height == 1
    assert frame["manifest_path"][0].endswith("m-a1.avro")


def test_sort_order_rendering() -> None:
    assert str(SortOrder.model_validate({"order-id": 0, "fields": []})) == "order 0: unsorted"
    order = SortOrder.model_validate(
        {
            "order-id": 3,
            "fields": [
                {"source-id": 2, "transform": "identity", "direction": "desc", "null-order": "nulls-last"},
                {"source-id": 1, "transform": "bucket[4]", "direction": "asc", "null-order": "nulls-first"},
            ],
        }
    )
    assert str(order) == "order 3: identity(2) desc nulls-last, bucket[4](1) asc nulls-first"

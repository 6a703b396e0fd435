import pytest

from icepeek.core.errors import MetadataCorrupt, SchemaNotFound, UnknownColumn
from icepeek.core.schema import Schema, diff, resolve_effective_schema, schema_history
from icepeek.core.types import DOUBLE, INT, LONG, STRING, DecimalType, Field, StructType


def _nested_schema(schema_id: int, city_name: str = "city") -> Schema:
    address = StructType(
        (
            Field(11, city_name, STRING),
            Field(12, "zip", STRING),
        )
    )
    return Schema(schema_id, (Field(1, "id", LONG, required=True), Field(10, "address", address)))


def test_diff_against_itself_is_empty_for_every_version(metadata) -> None:
    for s in metadata.schemas:
        assert diff(s, s).is_empty
        effective = resolve_effective_schema(metadata, s.schema_id)
        assert diff(effective, effective).summary_lines() == []


def test_rename_and_widen_matched_by_field_id(metadata) -> None:
    d = diff(metadata.schema_by_id(0), metadata.schema_by_id(1))
    assert d.renamed == (("amt", "amount"),)
    assert [(f.field_id, str(a), str(b)) for f, a, b in d.retyped] == [(2, "int", "long")]
    assert d.widened == d.retyped
    assert d.narrowed == ()
    assert [f.name for f in d.added] == ["age"]
    assert d.removed == ()


def test_reordered_fields_are_not_reported() -> None:
    a = Schema(0, (Field(1, "x", INT), Field(2, "y", STRING)))
    b = Schema(1, (Field(2, "y", STRING), Field(1, "x", INT)))
    assert diff(a, b).is_empty


def test_drop_and_re_add_with_same_name_is_remove_plus_add() -> None:
    a = Schema(0, (Field(1, "x", INT),))
    b = Schema(1, (Field(2, "x", INT),))
    d = diff(a, b)
    assert [f.field_id for f in d.removed] == [1]
    assert [f.field_id for f in d.added] == [2]
    assert d.renamed == ()


def test_narrowing_is_reported_not_rejected() -> None:
    a = Schema(0, (Field(1, "price", DOUBLE), Field(2, "qty", DecimalType(10, 2))))
    b = Schema(1, (Field(1, "price", INT), Field(2, "qty", DecimalType(12, 2))))
    d = diff(a, b)
    assert len(d.retyped) == 2
    assert [f.name for f, _, _ in d.narrowed] == ["price"]
    assert [f.name for f, _, _ in d.widened] == ["qty"]
    assert "~ INCOMPATIBLE price: double -> int" in d.summary_lines()


def test_nullability_change() -> None:
    a = Schema(0, (Field(1, "x", INT, required=True),))
    b = Schema(1, (Field(1, "x", INT, required=False),))
    d = diff(a, b)
    assert d.nullability[0][1:] == (True, False)
    assert d.summary_lines() == ["~ x: required -> optional"]


def test_nested_rename_uses_dotted_paths() -> None:
    d = diff(_nested_schema(0), _nested_schema(1, city_name="town"))
    assert d.renamed == (("address.city", "address.town"),)
    assert d.retyped == ()


def test_schema_lookups() -> None:
    s = _nested_schema(3)
    assert s.column_names == ["id", "address"]
    assert s.path_of(12) == "address.zip"
    assert s.find_field("address.zip").field_id == 12
    assert s.find_field("address.nope") is None
    assert s.field_by_id(99) is None
    assert [p for p, _ in s.all_fields()] == ["id", "address", "address.city", "address.zip"]
    assert str(s).splitlines()[1] == "  1: id: required long"


def test_select_keeps_schema_order_and_rejects_unknown() -> None:
    s = Schema(0, (Field(1, "a", INT), Field(2, "b", INT), Field(3, "c", INT)), (1, 3))
    picked = s.select(["c", "a"])
    assert picked.column_names == ["a", "c"]
    assert picked.identifier_field_ids == (1, 3)
    with pytest.raises(UnknownColumn):
        s.select(["zz"])


def test_duplicate_field_ids_are_corrupt() -> None:
    with pytest.raises(MetadataCorrupt, match="duplicate field id 1"):
        Schema(0, (Field(1, "a", INT), Field(1, "b", INT)))


def test_json_round_trip(metadata) -> None:
    s = metadata.schema_by_id(1)
    assert Schema.from_json_obj(s.to_json_obj()) == s


def test_resolve_missing_schema_version(metadata) -> None:
    with pytest.raises(SchemaNotFound) as ei:
        resolve_effective_schema(metadata, 42)
    assert ei.value.schema_id == 42


def test_schema_history_is_pairwise(metadata) -> None:
    history = schema_history(metadata)
    assert [(a.schema_id, b.schema_id) for a, b, _ in history] == [(0, 1)]
    assert history[0][2].renamed == (("amt", "amount"),)

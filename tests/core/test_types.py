import struct
import uuid
from datetime import UTC, date, datetime, time
from decimal import Decimal

import pytest

from icepeek.core.errors import MetadataCorrupt, TypeMismatch
from icepeek.core.types import (
    BOOLEAN,
    DATE,
    DOUBLE,
    INT,
    LONG,
    STRING,
    TIMESTAMP,
    TIMESTAMPTZ,
    UUID,
    DecimalType,
    Family,
    FixedType,
    ListType,
    MapType,
    StructType,
    can_promote,
    coerce_literal,
    comparison_family,
    decode_bound,
    parse_type,
    type_to_json,
)


@pytest.mark.parametrize(
    "text",
    ["boolean", "int", "long", "float", "double", "date", "time", "timestamp", "timestamptz",
     "string", "uuid", "binary", "decimal(10, 2)", "fixed[16]"],
)
def test_primitive_types_render_back_to_metadata_names(text: str) -> None:
    assert str(parse_type(text)) == text
    assert type_to_json(parse_type(text)) == text


def test_parse_nested_types() -> None:
    t = parse_type(
        {
            "type": "struct",
            "fields": [
                {"id": 10, "name": "tags", "required": False,
                 "type": {"type": "list", "element-id": 11, "element": "string", "element-required": True}},
                {"id": 12, "name": "attrs", "required": False,
                 "type": {"type": "map", "key-id": 13, "key": "string", "value-id": 14, "value": "long"}},
            ],
        }
    )
    assert isinstance(t, StructType)
    tags, attrs = t.fields
    assert isinstance(tags.field_type, ListType) and tags.field_type.element_required
    assert isinstance(attrs.field_type, MapType)
    assert str(t) == "struct<tags: list<string>, attrs: map<string, long>>"
    assert parse_type(type_to_json(t)) == t


@pytest.mark.parametrize("bad", ["varchar", "decimal(10)", {"type": "tuple"}, 42])
def test_unknown_types_are_metadata_corruption(bad) -> None:
    with pytest.raises(MetadataCorrupt):
        parse_type(bad)


@pytest.mark.parametrize(
    "old, new, ok",
    [
        (INT, LONG, True),
        (LONG, INT, False),
        (parse_type("float"), DOUBLE, True),
        (DOUBLE, parse_type("float"), False),
        (DecimalType(10, 2), DecimalType(12, 2), True),
        (DecimalType(10, 2), DecimalType(12, 3), False),
        (DecimalType(12, 2), DecimalType(10, 2), False),
        (INT, DecimalType(10, 0), True),
        (INT, DecimalType(9, 0), False),
        (LONG, DecimalType(19, 0), True),
        (DATE, TIMESTAMP, True),
        (STRING, INT, False),
        (FixedType(16), UUID, False),
    ],
)
def test_promotion_rules(old, new, ok: bool) -> None:
    assert can_promote(old, new) is ok


def test_comparison_families() -> None:
    assert comparison_family(DecimalType(5, 1)) is Family.NUMERIC
    assert comparison_family(UUID) is Family.STRING
    assert comparison_family(TIMESTAMPTZ) is Family.TEMPORAL
    assert comparison_family(BOOLEAN) is Family.BOOLEAN
    assert comparison_family(StructType(())) is Family.NESTED


def test_number_literal_coercion() -> None:
    assert coerce_literal(INT, "30", number=True) == 30
    assert coerce_literal(INT, "30.5", number=True) == Decimal("30.5")
    assert coerce_literal(DOUBLE, "-1.25", number=True) == -1.25
    assert coerce_literal(DecimalType(10, 2), "3.10", number=True) == Decimal("3.10")
    assert coerce_literal(BOOLEAN, "1", number=True) is True


def test_number_literal_out_of_range_for_int() -> None:
    with pytest.raises(TypeMismatch, match="out of range"):
        coerce_literal(INT, str(2**31), number=True)


def test_number_literal_against_string_column_is_mismatch() -> None:
    with pytest.raises(TypeMismatch, match="cannot compare string column with number '42'"):
        coerce_literal(STRING, "42", number=True)


def test_string_literal_coercion() -> None:
    assert coerce_literal(STRING, "NYC") == "NYC"
    assert coerce_literal(DATE, "2024-03-01") == date(2024, 3, 1)
    assert coerce_literal(parse_type("time"), "12:30:00") == time(12, 30)
    assert coerce_literal(TIMESTAMP, "2024-03-01T10:00:00") == datetime(2024, 3, 1, 10)
    assert coerce_literal(TIMESTAMPTZ, "2024-03-01T10:00:00") == datetime(2024, 3, 1, 10, tzinfo=UTC)
    assert coerce_literal(TIMESTAMP, "2024-03-01T10:00:00+02:00") == datetime(2024, 3, 1, 8)
    u = "9c12d441-03fe-4693-9a96-a0705ddf69c1"
    assert coerce_literal(UUID, u) == uuid.UUID(u)
    assert coerce_literal(BOOLEAN, "true") is True
    assert coerce_literal(INT, "17") == 17


@pytest.mark.parametrize("t, text", [(INT, "abc"), (DATE, "2024-13-45"), (TIMESTAMP, "yesterday"), (UUID, "nope")])
def test_unparseable_string_literal_is_mismatch(t, text: str) -> None:
    with pytest.raises(TypeMismatch):
        coerce_literal(t, text)


def test_boolean_literal_only_for_boolean_columns() -> None:
    assert coerce_literal(BOOLEAN, False) is False
    with pytest.raises(TypeMismatch, match="boolean"):
        coerce_literal(INT, True)


def test_decode_little_endian_bounds() -> None:
    assert decode_bound(INT, struct.pack("<i", -7)) == -7
    assert decode_bound(LONG, struct.pack("<q", 2**40)) == 2**40
    # int bound written before the column was widened to long
    assert decode_bound(LONG, struct.pack("<i", 12)) == 12
    assert decode_bound(DOUBLE, struct.pack("<d", 2.5)) == 2.5
    assert decode_bound(DATE, struct.pack("<i", 19783)) == date(2024, 3, 1)
    assert decode_bound(TIMESTAMPTZ, struct.pack("<q", 0)) == datetime(1970, 1, 1, tzinfo=UTC)
    assert decode_bound(TIMESTAMP, struct.pack("<i", 1)) == datetime(1970, 1, 2)
    assert decode_bound(STRING, "abc".encode()) == "abc"
    assert decode_bound(BOOLEAN, b"\x01") is True


def test_decode_decimal_and_uuid_bounds() -> None:
    assert decode_bound(DecimalType(10, 2), (12345).to_bytes(2, "big", signed=True)) == Decimal("123.45")
    u = uuid.UUID("9c12d441-03fe-4693-9a96-a0705ddf69c1")
    assert decode_bound(UUID, u.bytes) == u


def test_decode_bound_passes_through_non_bytes_and_bad_widths() -> None:
    assert decode_bound(INT, 5) == 5
    assert decode_bound(INT, b"\x01\x02") == b"\x01\x02"

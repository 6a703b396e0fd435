"""
Table-format type model, value coercion and bound decoding.

Types are a closed set of frozen dataclasses (PrimitiveType, DecimalType, FixedType,
StructType, ListType, MapType) grouped by the ``IcebergType`` union. Consumers branch
on the concrete class with isinstance checks; there is no per-type dispatch method.

Responsibilities
- Parse the JSON type representation found in table metadata (strings such as
  ``"long"`` / ``"decimal(10, 2)"`` / ``"fixed[16]"`` and nested struct/list/map objects).
- Render every type back to its canonical string.
- Define the widening (promotion) rules used when diffing schema versions.
- Coerce filter literals to the Python value of a column type.
- Decode the binary single-value serialization used for column lower/upper bounds.

Notes
- Zero-IO; stdlib only.
- Python value mapping: boolean -> bool, int/long -> int, float/double -> float,
  decimal -> Decimal, date -> datetime.date, time -> datetime.time,
  timestamp -> naive datetime, timestamptz -> UTC-aware datetime, string -> str,
  uuid -> uuid.UUID, fixed/binary -> bytes.
- Unknown type names raise MetadataCorrupt: the engine shows what metadata claims,
  but it cannot invent a type it does not model.

Examples
--------
>>> from icepeek.core.types import parse_type, can_promote
>>> str(parse_type("decimal(10, 2)"))
'decimal(10, 2)'
>>> can_promote(parse_type("int"), parse_type("long"))
True
>>> can_promote(parse_type("long"), parse_type("int"))
False
"""

from __future__ import annotations

import re
import struct
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Final, Union

from .errors import MetadataCorrupt, TypeMismatch

__all__ = [
    "TypeKind",
    "Family",
    "PrimitiveType",
    "DecimalType",
    "FixedType",
    "StructType",
    "ListType",
    "MapType",
    "IcebergType",
    "Field",
    "BOOLEAN",
    "INT",
    "LONG",
    "FLOAT",
    "DOUBLE",
    "DATE",
    "TIME",
    "TIMESTAMP",
    "TIMESTAMPTZ",
    "STRING",
    "UUID",
    "BINARY",
    "parse_type",
    "type_to_json",
    "is_nested",
    "can_promote",
    "comparison_family",
    "coerce_number",
    "coerce_string",
    "coerce_boolean",
    "coerce_literal",
    "decode_bound",
]


class TypeKind(Enum):
    """Tag of every type variant; serialized values match the metadata type names."""

    BOOLEAN = "boolean"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    TIMESTAMPTZ = "timestamptz"
    TIMESTAMP_NS = "timestamp_ns"
    TIMESTAMPTZ_NS = "timestamptz_ns"
    STRING = "string"
    UUID = "uuid"
    FIXED = "fixed"
    BINARY = "binary"
    STRUCT = "struct"
    LIST = "list"
    MAP = "map"


class Family(Enum):
    """Comparison families used for literal coercion."""

    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    STRING = "string"
    TEMPORAL = "temporal"
    BINARY = "binary"
    NESTED = "nested"


_PRIMITIVE_KINDS: Final[frozenset[TypeKind]] = frozenset(
    {
        TypeKind.BOOLEAN,
        TypeKind.INT,
        TypeKind.LONG,
        TypeKind.FLOAT,
        TypeKind.DOUBLE,
        TypeKind.DATE,
        TypeKind.TIME,
        TypeKind.TIMESTAMP,
        TypeKind.TIMESTAMPTZ,
        TypeKind.TIMESTAMP_NS,
        TypeKind.TIMESTAMPTZ_NS,
        TypeKind.STRING,
        TypeKind.UUID,
        TypeKind.BINARY,
    }
)


@dataclass(frozen=True, slots=True)
class PrimitiveType:
    """Parameterless primitive type (boolean, int, long, ..., binary)."""

    kind: TypeKind

    def __post_init__(self) -> None:
        if self.kind not in _PRIMITIVE_KINDS:
            raise ValueError(f"{self.kind.value!r} is not a parameterless primitive type")

    def __str__(self) -> str:
        return self.kind.value


@dataclass(frozen=True, slots=True)
class DecimalType:
    """Fixed-point decimal with precision and scale."""

    precision: int
    scale: int

    @property
    def kind(self) -> TypeKind:
        return TypeKind.DECIMAL

    def __str__(self) -> str:
        return f"decimal({self.precision}, {self.scale})"


@dataclass(frozen=True, slots=True)
class FixedType:
    """Fixed-length binary."""

    length: int

    @property
    def kind(self) -> TypeKind:
        return TypeKind.FIXED

    def __str__(self) -> str:
        return f"fixed[{self.length}]"


@dataclass(frozen=True, slots=True)
class StructType:
    """Ordered child fields; each child carries its own stable field id."""

    fields: tuple[Field, ...]

    @property
    def kind(self) -> TypeKind:
        return TypeKind.STRUCT

    def __str__(self) -> str:
        inner = ", ".join(f"{f.name}: {f.field_type}" for f in self.fields)
        return f"struct<{inner}>"


@dataclass(frozen=True, slots=True)
class ListType:
    """List with a single element field (element id, type and requiredness)."""

    element_id: int
    element: IcebergType
    element_required: bool = False

    @property
    def kind(self) -> TypeKind:
        return TypeKind.LIST

    def __str__(self) -> str:
        return f"list<{self.element}>"


@dataclass(frozen=True, slots=True)
class MapType:
    """Map with key and value fields; keys are always required."""

    key_id: int
    key: IcebergType
    value_id: int
    value: IcebergType
    value_required: bool = False

    @property
    def kind(self) -> TypeKind:
        return TypeKind.MAP

    def __str__(self) -> str:
        return f"map<{self.key}, {self.value}>"


IcebergType = Union[PrimitiveType, DecimalType, FixedType, StructType, ListType, MapType]


@dataclass(frozen=True, slots=True)
class Field:
    """
    A named, typed field with a stable identifier.

    Attributes:
        field_id (int): Durable identifier; survives renames and retypes.
        name (str): Field name in this schema version (not a durable key).
        field_type (IcebergType): Field type.
        required (bool): True when the field may not hold nulls.
        doc (str | None): Optional documentation string from metadata.
        initial_default (Any): Value for rows written before the field existed.
        write_default (Any): Value writers use when none is supplied.
    """

    field_id: int
    name: str
    field_type: IcebergType
    required: bool = False
    doc: str | None = None
    initial_default: Any = None
    write_default: Any = None

    @property
    def nullable(self) -> bool:
        return not self.required

    def __str__(self) -> str:
        req = "required" if self.required else "optional"
        return f"{self.field_id}: {self.name}: {req} {self.field_type}"

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> Field:
        """
        Build a Field from its metadata JSON object.

        Raises:
            MetadataCorrupt: If id/name/type are missing or the type is unknown.
        """
        try:
            field_id = int(obj["id"])
            name = str(obj["name"])
            raw_type = obj["type"]
        except (KeyError, TypeError, ValueError) as exc:
            raise MetadataCorrupt(f"malformed schema field {obj!r}") from exc
        return cls(
            field_id=field_id,
            name=name,
            field_type=parse_type(raw_type),
            required=bool(obj.get("required", False)),
            doc=obj.get("doc"),
            initial_default=obj.get("initial-default"),
            write_default=obj.get("write-default"),
        )

    def to_json_obj(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.field_id,
            "name": self.name,
            "required": self.required,
            "type": type_to_json(self.field_type),
        }
        if self.doc is not None:
            out["doc"] = self.doc
        if self.initial_default is not None:
            out["initial-default"] = self.initial_default
        if self.write_default is not None:
            out["write-default"] = self.write_default
        return out


BOOLEAN: Final = PrimitiveType(TypeKind.BOOLEAN)
INT: Final = PrimitiveType(TypeKind.INT)
LONG: Final = PrimitiveType(TypeKind.LONG)
FLOAT: Final = PrimitiveType(TypeKind.FLOAT)
DOUBLE: Final = PrimitiveType(TypeKind.DOUBLE)
DATE: Final = PrimitiveType(TypeKind.DATE)
TIME: Final = PrimitiveType(TypeKind.TIME)
TIMESTAMP: Final = PrimitiveType(TypeKind.TIMESTAMP)
TIMESTAMPTZ: Final = PrimitiveType(TypeKind.TIMESTAMPTZ)
STRING: Final = PrimitiveType(TypeKind.STRING)
UUID: Final = PrimitiveType(TypeKind.UUID)
BINARY: Final = PrimitiveType(TypeKind.BINARY)


# ============================================================================
# Parsing
# ============================================================================

_DECIMAL_RE = re.compile(r"^decimal\(\s*(\d+)\s*,\s*(\d+)\s*\)$")
_FIXED_RE = re.compile(r"^fixed\[\s*(\d+)\s*\]$")


def parse_type(obj: Any) -> IcebergType:
    """
    Parse a metadata JSON type representation.

    Args:
        obj (Any): A type name string or a nested type object
            (``{"type": "struct" | "list" | "map", ...}``).

    Returns:
        IcebergType: Parsed type.

    Raises:
        MetadataCorrupt: If the representation is not a known type.
    """
    if isinstance(obj, str):
        name = obj.strip().lower()
        m = _DECIMAL_RE.match(name)
        if m:
            return DecimalType(int(m.group(1)), int(m.group(2)))
        m = _FIXED_RE.match(name)
        if m:
            return FixedType(int(m.group(1)))
        try:
            return PrimitiveType(TypeKind(name))
        except ValueError as exc:
            raise MetadataCorrupt(f"unknown type {obj!r}") from exc
    if isinstance(obj, dict):
        kind = obj.get("type")
        try:
            if kind == "struct":
                return StructType(tuple(Field.from_json_obj(f) for f in obj.get("fields", [])))
            if kind == "list":
                return ListType(
                    element_id=int(obj["element-id"]),
                    element=parse_type(obj["element"]),
                    element_required=bool(obj.get("element-required", False)),
                )
            if kind == "map":
                return MapType(
                    key_id=int(obj["key-id"]),
                    key=parse_type(obj["key"]),
                    value_id=int(obj["value-id"]),
                    value=parse_type(obj["value"]),
                    value_required=bool(obj.get("value-required", False)),
                )
        except (KeyError, TypeError, ValueError) as exc:
            raise MetadataCorrupt(f"malformed {kind} type {obj!r}") from exc
    raise MetadataCorrupt(f"unknown type {obj!r}")


def type_to_json(t: IcebergType) -> Any:
    """Inverse of parse_type: primitives render as strings, nested types as objects."""
    if isinstance(t, StructType):
        return {"type": "struct", "fields": [f.to_json_obj() for f in t.fields]}
    if isinstance(t, ListType):
        return {
            "type": "list",
            "element-id": t.element_id,
            "element": type_to_json(t.element),
            "element-required": t.element_required,
        }
    if isinstance(t, MapType):
        return {
            "type": "map",
            "key-id": t.key_id,
            "key": type_to_json(t.key),
            "value-id": t.value_id,
            "value": type_to_json(t.value),
            "value-required": t.value_required,
        }
    return str(t)


def is_nested(t: IcebergType) -> bool:
    return isinstance(t, (StructType, ListType, MapType))


# ============================================================================
# Promotion (schema evolution widening)
# ============================================================================

_INTEGER_KINDS: Final[frozenset[TypeKind]] = frozenset({TypeKind.INT, TypeKind.LONG})
_FLOAT_KINDS: Final[frozenset[TypeKind]] = frozenset({TypeKind.FLOAT, TypeKind.DOUBLE})
_TIMESTAMP_KINDS: Final[frozenset[TypeKind]] = frozenset(
    {TypeKind.TIMESTAMP, TypeKind.TIMESTAMPTZ, TypeKind.TIMESTAMP_NS, TypeKind.TIMESTAMPTZ_NS}
)
_TEMPORAL_KINDS: Final[frozenset[TypeKind]] = _TIMESTAMP_KINDS | {TypeKind.DATE, TypeKind.TIME}

# Smallest decimal precision (scale 0) that holds every value of the integer type.
_INT_DECIMAL_PRECISION: Final[dict[TypeKind, int]] = {TypeKind.INT: 10, TypeKind.LONG: 19}


def can_promote(old: IcebergType, new: IcebergType) -> bool:
    """
    Whether changing a field from ``old`` to ``new`` is a legal widening.

    Rules:
        - identical types
        - int -> long
        - float -> double
        - decimal(P, S) -> decimal(P', S) with P' >= P
        - int -> decimal(P, 0) with P >= 10; long -> decimal(P, 0) with P >= 19
        - date -> timestamp / timestamptz (and their nanosecond variants)

    Nested types are only promotable when identical; their children are compared
    field by field (by id) in icepeek.core.schema.diff.
    """
    if old == new:
        return True
    if isinstance(old, PrimitiveType) and isinstance(new, PrimitiveType):
        if old.kind == TypeKind.INT and new.kind == TypeKind.LONG:
            return True
        if old.kind == TypeKind.FLOAT and new.kind == TypeKind.DOUBLE:
            return True
        if old.kind == TypeKind.DATE and new.kind in _TIMESTAMP_KINDS:
            return True
        return False
    if isinstance(old, DecimalType) and isinstance(new, DecimalType):
        return new.scale == old.scale and new.precision >= old.precision
    if isinstance(old, PrimitiveType) and isinstance(new, DecimalType):
        needed = _INT_DECIMAL_PRECISION.get(old.kind)
        return needed is not None and new.scale == 0 and new.precision >= needed
    return False


def comparison_family(t: IcebergType) -> Family:
    if isinstance(t, DecimalType):
        return Family.NUMERIC
    if isinstance(t, FixedType):
        return Family.BINARY
    if isinstance(t, (StructType, ListType, MapType)):
        return Family.NESTED
    kind = t.kind
    if kind in _INTEGER_KINDS or kind in _FLOAT_KINDS:
        return Family.NUMERIC
    if kind in _TEMPORAL_KINDS:
        return Family.TEMPORAL
    if kind in (TypeKind.STRING, TypeKind.UUID):
        return Family.STRING
    if kind == TypeKind.BOOLEAN:
        return Family.BOOLEAN
    return Family.BINARY


# ============================================================================
# Literal coercion
# ============================================================================

_INT_BOUNDS: Final[dict[TypeKind, tuple[int, int]]] = {
    TypeKind.INT: (-(2**31), 2**31 - 1),
    TypeKind.LONG: (-(2**63), 2**63 - 1),
}


def _mismatch(t: IcebergType, text: str, what: str) -> TypeMismatch:
    return TypeMismatch(f"cannot compare {t} column with {what} {text!r}")


def _parse_integral(t: PrimitiveType, text: str, what: str) -> int | Decimal:
    try:
        dec = Decimal(text)
    except InvalidOperation as exc:
        raise _mismatch(t, text, what) from exc
    if not dec.is_finite():
        raise _mismatch(t, text, what)
    if dec != dec.to_integral_value():
        # Non-integral literal against an integer column: compare numerically.
        return dec
    value = int(dec)
    lo, hi = _INT_BOUNDS[t.kind]
    if not lo <= value <= hi:
        raise TypeMismatch(f"literal {text!r} is out of range for {t} column")
    return value


def coerce_number(t: IcebergType, text: str) -> Any:
    """
    Coerce an unquoted numeric literal to the value space of ``t``.

    Args:
        t (IcebergType): Column type.
        text (str): Literal text as lexed (optional sign, digits, optional fraction).

    Returns:
        Any: int for integer columns (Decimal when the literal is not integral),
        float for float/double, Decimal for decimal columns.

    Raises:
        TypeMismatch: If the column is not numeric or the value does not fit.
    """
    family = comparison_family(t)
    if family == Family.BOOLEAN and text in ("0", "1"):
        return text == "1"
    if family != Family.NUMERIC:
        raise _mismatch(t, text, "number")
    if isinstance(t, DecimalType):
        return Decimal(text)
    if isinstance(t, PrimitiveType) and t.kind in _FLOAT_KINDS:
        return float(text)
    return _parse_integral(t, text, "number")


def coerce_string(t: IcebergType, text: str) -> Any:
    """
    Coerce a quoted string literal to the value space of ``t``.

    String columns take the text verbatim; numeric and temporal columns parse it
    (ISO-8601 for dates, times and timestamps).

    Raises:
        TypeMismatch: If the text cannot be parsed as a value of ``t``.
    """
    family = comparison_family(t)
    if family == Family.NESTED:
        raise _mismatch(t, text, "string")
    if isinstance(t, DecimalType):
        try:
            return Decimal(text.strip())
        except InvalidOperation as exc:
            raise _mismatch(t, text, "string") from exc
    if isinstance(t, FixedType):
        return text.encode("utf-8")
    kind = t.kind
    try:
        if kind == TypeKind.STRING:
            return text
        if kind == TypeKind.UUID:
            return uuid.UUID(text.strip())
        if kind in _INTEGER_KINDS:
            return _parse_integral(t, text.strip(), "string")
        if kind in _FLOAT_KINDS:
            return float(text.strip())
        if kind == TypeKind.BOOLEAN:
            return coerce_boolean(t, _parse_bool_text(text))
        if kind == TypeKind.DATE:
            return date.fromisoformat(text.strip())
        if kind == TypeKind.TIME:
            return time.fromisoformat(text.strip())
        if kind in (TypeKind.TIMESTAMP, TypeKind.TIMESTAMP_NS):
            ts = datetime.fromisoformat(text.strip())
            if ts.tzinfo is not None:
                ts = ts.astimezone(UTC).replace(tzinfo=None)
            return ts
        if kind in (TypeKind.TIMESTAMPTZ, TypeKind.TIMESTAMPTZ_NS):
            ts = datetime.fromisoformat(text.strip())
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=UTC)
            return ts
        if kind == TypeKind.BINARY:
            return text.encode("utf-8")
    except ValueError as exc:
        raise _mismatch(t, text, "string") from exc
    raise _mismatch(t, text, "string")  # pragma: no cover - closed set


def _parse_bool_text(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"not a boolean: {text!r}")


def coerce_boolean(t: IcebergType, value: bool) -> bool:
    """Coerce a TRUE/FALSE literal; only boolean columns accept it."""
    if comparison_family(t) != Family.BOOLEAN:
        raise _mismatch(t, str(value).upper(), "boolean")
    return value


def coerce_literal(t: IcebergType, value: str | bool, *, number: bool = False) -> Any:
    """
    Coerce a lexed filter literal to the value space of ``t``.

    Args:
        t (IcebergType): Column type from the effective schema.
        value (str | bool): Literal text, or a bool for TRUE/FALSE.
        number (bool): True when ``value`` was an unquoted numeric token.

    Raises:
        TypeMismatch: If the literal has no value of type ``t``.
    """
    if isinstance(value, bool):
        return coerce_boolean(t, value)
    if number:
        return coerce_number(t, value)
    return coerce_string(t, value)


# ============================================================================
# Bound decoding (single-value binary serialization)
# ============================================================================

_EPOCH_DATE: Final[date] = date(1970, 1, 1)
_EPOCH_TS: Final[datetime] = datetime(1970, 1, 1)


def decode_bound(t: IcebergType, raw: Any) -> Any:
    """
    Decode a lower/upper bound value for a column of type ``t``.

    Args:
        t (IcebergType): Column type as of the snapshot being inspected.
        raw (Any): Bytes from a binary manifest, or an already-decoded value
            (JSON manifests); non-bytes values are returned unchanged.

    Returns:
        Any: Python value per the module value mapping. Bytes that do not match the
        expected width are returned unchanged so inspection views still show them.

    Notes:
        Bounds of string columns may be truncated prefixes; they are decoded with
        errors="replace".
    """
    if not isinstance(raw, (bytes, bytearray)):
        return raw
    b = bytes(raw)
    if isinstance(t, DecimalType):
        unscaled = int.from_bytes(b, "big", signed=True)
        return Decimal(unscaled).scaleb(-t.scale)
    if isinstance(t, FixedType) or is_nested(t):
        return b
    kind = t.kind
    try:
        if kind == TypeKind.BOOLEAN:
            return b[0] != 0
        if kind == TypeKind.INT:
            return struct.unpack("<i", b)[0]
        if kind == TypeKind.LONG:
            # Promoted int columns may still carry 4-byte bounds.
            return struct.unpack("<i", b)[0] if len(b) == 4 else struct.unpack("<q", b)[0]
        if kind == TypeKind.FLOAT:
            return struct.unpack("<f", b)[0]
        if kind == TypeKind.DOUBLE:
            return struct.unpack("<f", b)[0] if len(b) == 4 else struct.unpack("<d", b)[0]
        if kind == TypeKind.DATE:
            return _EPOCH_DATE + timedelta(days=struct.unpack("<i", b)[0])
        if kind == TypeKind.TIME:
            micros = struct.unpack("<q", b)[0]
            return (datetime.min + timedelta(microseconds=micros)).time()
        if kind in _TIMESTAMP_KINDS:
            if len(b) == 4:
                # Written while the column was still a date.
                day = _EPOCH_DATE + timedelta(days=struct.unpack("<i", b)[0])
                ts = datetime(day.year, day.month, day.day)
                return ts.replace(tzinfo=UTC) if kind in (TypeKind.TIMESTAMPTZ, TypeKind.TIMESTAMPTZ_NS) else ts
            ticks = struct.unpack("<q", b)[0]
            if kind in (TypeKind.TIMESTAMP_NS, TypeKind.TIMESTAMPTZ_NS):
                ticks //= 1000
            ts = _EPOCH_TS + timedelta(microseconds=ticks)
            if kind in (TypeKind.TIMESTAMPTZ, TypeKind.TIMESTAMPTZ_NS):
                ts = ts.replace(tzinfo=UTC)
            return ts
        if kind == TypeKind.STRING:
            return b.decode("utf-8", errors="replace")
        if kind == TypeKind.UUID:
            return uuid.UUID(bytes=b)
    except (struct.error, IndexError, ValueError):
        return b
    return b

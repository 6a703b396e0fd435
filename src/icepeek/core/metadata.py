"""
Table metadata model: snapshots, partition specs, sort orders, manifests and the
root TableMetadata aggregate.

Responsibilities
- Validate the metadata JSON document (format versions 1-3) into immutable models.
- Normalise v1 single-object forms (``schema``, ``partition-spec``) into list forms.
- Validate manifest list and manifest entries decoded by a metadata source.
- Provide structural lookups and verify every cross-reference at load time.

Source of truth
- Entity models are Pydantic v2 (frozen; unknown keys ignored so newer writers'
  fields do not break inspection). Hyphenated metadata keys are field aliases.
- TableMetadata is a frozen dataclass holding id-indexed lookups.

Notes
- Zero-IO (stdlib + pydantic only). Raw bytes are decoded by icepeek.io.
- Pydantic ValidationError is re-raised as MetadataCorrupt with the original chained.
- Broken cross-references raise MetadataCorrupt instead of being defaulted: a
  silently substituted schema or snapshot would misreport historical state.

Examples
--------
>>> from icepeek.core.metadata import TableMetadata
>>> md = TableMetadata.from_json_obj({
...     "format-version": 2,
...     "table-uuid": "9c12d441-03fe-4693-9a96-a0705ddf69c1",
...     "location": "/tmp/t",
...     "last-updated-ms": 0,
...     "current-schema-id": 0,
...     "schemas": [{"type": "struct", "schema-id": 0, "fields": [
...         {"id": 1, "name": "id", "required": True, "type": "long"}]}],
...     "current-snapshot-id": -1,
... })
>>> md.current_snapshot() is None
True
>>> md.current_schema().column_names
['id']
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import (
    CONTENT_DATA,
    MAIN_BRANCH,
    MANIFEST_CONTENT_DATA,
    NO_SNAPSHOT_ID,
    STATUS_ADDED,
    STATUS_DELETED,
    STATUS_EXISTING,
    SUPPORTED_FORMAT_VERSIONS,
)
from .errors import MetadataCorrupt, SchemaNotFound, SnapshotNotFound
from .schema import Schema

__all__ = [
    "Snapshot",
    "SnapshotRef",
    "SnapshotLogEntry",
    "PartitionField",
    "PartitionSpec",
    "SortField",
    "SortOrder",
    "ManifestListEntry",
    "DataFile",
    "ManifestEntry",
    "TableMetadata",
    "parse_manifest_list",
    "parse_manifest",
]

_MODEL_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ============================================================================
# Snapshots and refs
# ============================================================================


class Snapshot(BaseModel):
    """
    One committed table state.

    Attributes:
        snapshot_id (int): Unique snapshot identifier.
        parent_snapshot_id (int | None): Parent in the lineage; None for a root.
        sequence_number (int): Data sequence number (0 for v1 tables).
        timestamp_ms (int): Commit time, milliseconds since the epoch.
        schema_id (int | None): Schema version written with; v1 documents may omit it
            (TableMetadata fills in the current schema id).
        manifest_list (str | None): Location of the manifest list.
        manifests (tuple[str, ...] | None): Legacy v1 inline manifest locations.
        summary (dict[str, str]): Summary properties (``operation``, ``added-records``...).
    """

    model_config = _MODEL_CONFIG

    snapshot_id: int = Field(alias="snapshot-id")
    parent_snapshot_id: int | None = Field(default=None, alias="parent-snapshot-id")
    sequence_number: int = Field(default=0, alias="sequence-number")
    timestamp_ms: int = Field(alias="timestamp-ms")
    schema_id: int | None = Field(default=None, alias="schema-id")
    manifest_list: str | None = Field(default=None, alias="manifest-list")
    manifests: tuple[str, ...] | None = None
    summary: dict[str, str] = Field(default_factory=dict)

    @field_validator("summary", mode="before")
    @classmethod
    def _stringify_summary(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            return {str(k): str(val) for k, val in v.items()}
        return v

    @property
    def operation(self) -> str | None:
        return self.summary.get("operation")

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000, tz=UTC)

    def summary_int(self, key: str) -> int | None:
        """Numeric summary property, or None when absent or not an integer."""
        raw = self.summary.get(key)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None


class SnapshotRef(BaseModel):
    """Named branch or tag pointing at a snapshot."""

    model_config = _MODEL_CONFIG

    snapshot_id: int = Field(alias="snapshot-id")
    type: str = "branch"
    max_ref_age_ms: int | None = Field(default=None, alias="max-ref-age-ms")
    max_snapshot_age_ms: int | None = Field(default=None, alias="max-snapshot-age-ms")
    min_snapshots_to_keep: int | None = Field(default=None, alias="min-snapshots-to-keep")


class SnapshotLogEntry(BaseModel):
    model_config = _MODEL_CONFIG

    snapshot_id: int = Field(alias="snapshot-id")
    timestamp_ms: int = Field(alias="timestamp-ms")


# ============================================================================
# Partitioning and sorting
# ============================================================================


class PartitionField(BaseModel):
    """
    One partition field: ``transform(source column)`` stored under ``name``.

    Attributes:
        source_id (int): Field id of the source column.
        field_id (int | None): Partition field id (absent in some v1 specs).
        transform (str): Transform name, e.g. ``identity``, ``day``, ``bucket[16]``.
        name (str): Partition field name; manifests key partition values by it.
    """

    model_config = _MODEL_CONFIG

    source_id: int = Field(alias="source-id")
    field_id: int | None = Field(default=None, alias="field-id")
    transform: str
    name: str


class PartitionSpec(BaseModel):
    model_config = _MODEL_CONFIG

    spec_id: int = Field(default=0, alias="spec-id")
    fields: tuple[PartitionField, ...] = ()

    @property
    def is_unpartitioned(self) -> bool:
        return not self.fields

    def __str__(self) -> str:
        if not self.fields:
            return f"spec {self.spec_id}: unpartitioned"
        parts = ", ".join(f"{f.name}={f.transform}({f.source_id})" for f in self.fields)
        return f"spec {self.spec_id}: {parts}"


class SortField(BaseModel):
    """Descriptive only; icepeek never enforces sort order."""

    model_config = _MODEL_CONFIG

    source_id: int = Field(alias="source-id")
    transform: str = "identity"
    direction: str = "asc"
    null_order: str = Field(default="nulls-first", alias="null-order")


class SortOrder(BaseModel):
    model_config = _MODEL_CONFIG

    order_id: int = Field(default=0, alias="order-id")
    fields: tuple[SortField, ...] = ()

    def __str__(self) -> str:
        if not self.fields:
            return f"order {self.order_id}: unsorted"
        parts = ", ".join(
            f"{f.transform}({f.source_id}) {f.direction} {f.null_order}" for f in self.fields
        )
        return f"order {self.order_id}: {parts}"


# ============================================================================
# Manifest list and manifest entries
# ============================================================================


def _kv_pairs_to_dict(v: Any) -> Any:
    # Binary manifests encode int-keyed maps as arrays of {"key", "value"} records.
    if isinstance(v, list):
        return {item["key"]: item["value"] for item in v}
    return v


class ManifestListEntry(BaseModel):
    """
    One manifest belonging to a snapshot.

    Attributes:
        manifest_path (str): Location of the manifest file.
        manifest_length (int): Manifest file size in bytes.
        partition_spec_id (int): Spec that produced the manifest's partition tuples.
        content (int): 0 data manifest, 1 delete manifest.
        sequence_number (int): Sequence number of the commit that added the manifest.
        min_sequence_number (int): Lowest data sequence number of its live files.
        added_snapshot_id (int | None): Snapshot that wrote the manifest.
        added_files_count / existing_files_count / deleted_files_count (int | None):
            Entry counts by status.
    """

    model_config = _MODEL_CONFIG

    manifest_path: str
    manifest_length: int = 0
    partition_spec_id: int = 0
    content: int = MANIFEST_CONTENT_DATA
    sequence_number: int = 0
    min_sequence_number: int = 0
    added_snapshot_id: int | None = None
    added_files_count: int | None = Field(
        default=None, validation_alias=AliasChoices("added_files_count", "added_data_files_count")
    )
    existing_files_count: int | None = Field(
        default=None,
        validation_alias=AliasChoices("existing_files_count", "existing_data_files_count"),
    )
    deleted_files_count: int | None = Field(
        default=None,
        validation_alias=AliasChoices("deleted_files_count", "deleted_data_files_count"),
    )
    added_rows_count: int | None = None
    existing_rows_count: int | None = None
    deleted_rows_count: int | None = None

    @property
    def is_data(self) -> bool:
        return self.content == MANIFEST_CONTENT_DATA


class DataFile(BaseModel):
    """
    Data or delete file description with per-column statistics keyed by field id.

    Notes:
        Bounds hold raw values: bytes from binary manifests (decoded on demand with
        icepeek.core.types.decode_bound) or plain JSON values.
    """

    model_config = _MODEL_CONFIG

    content: int = CONTENT_DATA
    file_path: str
    file_format: str = "PARQUET"
    partition: dict[str, Any] | list[Any] = Field(default_factory=dict)
    record_count: int
    file_size_in_bytes: int = 0
    column_sizes: dict[int, int] | None = None
    value_counts: dict[int, int] | None = None
    null_value_counts: dict[int, int] | None = None
    nan_value_counts: dict[int, int] | None = None
    lower_bounds: dict[int, Any] | None = None
    upper_bounds: dict[int, Any] | None = None
    split_offsets: tuple[int, ...] | None = None
    equality_ids: tuple[int, ...] | None = None
    sort_order_id: int | None = None

    @field_validator(
        "column_sizes",
        "value_counts",
        "null_value_counts",
        "nan_value_counts",
        "lower_bounds",
        "upper_bounds",
        mode="before",
    )
    @classmethod
    def _maps_from_pairs(cls, v: Any) -> Any:
        return _kv_pairs_to_dict(v)

    @field_validator("file_format", mode="before")
    @classmethod
    def _upper_format(cls, v: Any) -> Any:
        # Some writers encode the format as an enum ordinal.
        if isinstance(v, int):
            return {0: "AVRO", 1: "ORC", 2: "PARQUET"}.get(v, "UNKNOWN")
        return v.upper() if isinstance(v, str) else v


class ManifestEntry(BaseModel):
    """
    One manifest row: a data file plus its status relative to the writing snapshot.

    Attributes:
        status (int): 0 existing, 1 added, 2 deleted.
        snapshot_id (int | None): Snapshot that added or deleted the file.
        sequence_number (int | None): Data sequence number.
        file_sequence_number (int | None): File sequence number (v2+).
        data_file (DataFile): File description.
    """

    model_config = _MODEL_CONFIG

    status: int
    snapshot_id: int | None = None
    sequence_number: int | None = None
    file_sequence_number: int | None = None
    data_file: DataFile

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: int) -> int:
        if v not in (STATUS_EXISTING, STATUS_ADDED, STATUS_DELETED):
            raise ValueError(f"unknown manifest entry status {v}")
        return v

    @property
    def is_alive(self) -> bool:
        return self.status in (STATUS_ADDED, STATUS_EXISTING)

    @property
    def status_name(self) -> str:
        return {STATUS_EXISTING: "existing", STATUS_ADDED: "added", STATUS_DELETED: "deleted"}[
            self.status
        ]


def parse_manifest_list(records: list[Mapping[str, Any]]) -> list[ManifestListEntry]:
    """
    Validate decoded manifest-list records.

    Raises:
        MetadataCorrupt: If a record does not describe a manifest.
    """
    try:
        return [ManifestListEntry.model_validate(r) for r in records]
    except ValidationError as exc:
        raise MetadataCorrupt(f"malformed manifest list: {exc}") from exc


def parse_manifest(records: list[Mapping[str, Any]]) -> list[ManifestEntry]:
    """
    Validate decoded manifest entry records.

    Raises:
        MetadataCorrupt: If a record is not a manifest entry.
    """
    try:
        return [ManifestEntry.model_validate(r) for r in records]
    except ValidationError as exc:
        raise MetadataCorrupt(f"malformed manifest: {exc}") from exc


# ============================================================================
# Root aggregate
# ============================================================================


def _int_entry(obj: Mapping[str, Any], key: str, default: int | None) -> int:
    raw = obj.get(key, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise MetadataCorrupt(f"{key} must be an integer, got {raw!r}") from exc


def _list_entry(obj: Mapping[str, Any], key: str) -> list[Any]:
    raw = obj.get(key) or []
    if not isinstance(raw, list):
        raise MetadataCorrupt(f"{key} must be a list, got {type(raw).__name__}")
    return raw


def _map_entry(obj: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    raw = obj.get(key) or {}
    if not isinstance(raw, Mapping):
        raise MetadataCorrupt(f"{key} must be an object, got {type(raw).__name__}")
    return raw


@dataclass(frozen=True, slots=True)
class TableMetadata:
    """
    Root aggregate of one table metadata document. Immutable once loaded.

    Attributes:
        format_version (int): 1, 2 or 3.
        table_uuid (str): Table identifier.
        location (str): Table base location.
        last_updated_ms (int): Last metadata update time.
        last_sequence_number (int): Highest assigned sequence number (0 for v1).
        current_snapshot_id (int | None): None when the table has no snapshot.
        current_schema_id (int): Current schema version.
        schemas (tuple[Schema, ...]): All schema versions, metadata order.
        snapshots (tuple[Snapshot, ...]): All retained snapshots, metadata order.
        partition_specs (tuple[PartitionSpec, ...]): All partition specs.
        default_spec_id (int): Spec used for new writes.
        sort_orders (tuple[SortOrder, ...]): All sort orders.
        default_sort_order_id (int): Sort order used for new writes.
        properties (dict[str, str]): Free-form table properties.
        snapshot_log (tuple[SnapshotLogEntry, ...]): Current-snapshot history.
        refs (dict[str, SnapshotRef]): Branches and tags.
    """

    format_version: int
    table_uuid: str
    location: str
    last_updated_ms: int
    last_sequence_number: int
    current_snapshot_id: int | None
    current_schema_id: int
    schemas: tuple[Schema, ...]
    snapshots: tuple[Snapshot, ...]
    partition_specs: tuple[PartitionSpec, ...]
    default_spec_id: int
    sort_orders: tuple[SortOrder, ...]
    default_sort_order_id: int
    properties: dict[str, str]
    snapshot_log: tuple[SnapshotLogEntry, ...] = ()
    refs: dict[str, SnapshotRef] = field(default_factory=dict)
    _snapshots_by_id: dict[int, Snapshot] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _schemas_by_id: dict[int, Schema] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for s in self.snapshots:
            if s.snapshot_id in self._snapshots_by_id:
                raise MetadataCorrupt(f"duplicate snapshot id {s.snapshot_id}")
            self._snapshots_by_id[s.snapshot_id] = s
        for sc in self.schemas:
            if sc.schema_id in self._schemas_by_id:
                raise MetadataCorrupt(f"duplicate schema id {sc.schema_id}")
            self._schemas_by_id[sc.schema_id] = sc

    # ---- construction ------------------------------------------------------

    @classmethod
    def from_json_obj(cls, obj: Mapping[str, Any]) -> TableMetadata:
        """
        Build metadata from a parsed metadata JSON document and check its integrity.

        Args:
            obj (Mapping[str, Any]): Parsed ``*.metadata.json`` content.

        Returns:
            TableMetadata: Validated aggregate.

        Raises:
            MetadataCorrupt: If the document is malformed, uses an unsupported format
                version, or has a broken cross-reference.
        """
        if not isinstance(obj, Mapping):
            raise MetadataCorrupt("table metadata must be a JSON object")
        try:
            version = int(obj["format-version"])
        except (KeyError, TypeError, ValueError) as exc:
            raise MetadataCorrupt("missing or invalid format-version") from exc
        if version not in SUPPORTED_FORMAT_VERSIONS:
            raise MetadataCorrupt(f"unsupported format-version {version}")

        raw_schemas = _list_entry(obj, "schemas")
        if not raw_schemas and "schema" in obj:
            raw_schemas = [obj["schema"]]
        if not raw_schemas:
            raise MetadataCorrupt("metadata has no schemas")
        schemas = tuple(Schema.from_json_obj(s) for s in raw_schemas)
        current_schema_id = _int_entry(obj, "current-schema-id", schemas[-1].schema_id)

        current_snapshot_id: int | None = None
        if obj.get("current-snapshot-id") is not None:
            current_snapshot_id = _int_entry(obj, "current-snapshot-id", None)
            if current_snapshot_id == NO_SNAPSHOT_ID:
                current_snapshot_id = None

        try:
            snapshots = tuple(
                Snapshot.model_validate(s) for s in _list_entry(obj, "snapshots")
            )
            snapshots = tuple(
                s if s.schema_id is not None else s.model_copy(update={"schema_id": current_schema_id})
                for s in snapshots
            )

            raw_specs = _list_entry(obj, "partition-specs")
            if not raw_specs and "partition-spec" in obj:
                raw_specs = [{"spec-id": 0, "fields": obj["partition-spec"]}]
            specs = tuple(PartitionSpec.model_validate(s) for s in raw_specs or [{"spec-id": 0}])

            sort_orders = tuple(
                SortOrder.model_validate(o) for o in _list_entry(obj, "sort-orders")
            )
            snapshot_log = tuple(
                SnapshotLogEntry.model_validate(e) for e in _list_entry(obj, "snapshot-log")
            )
            refs = {
                str(name): SnapshotRef.model_validate(ref)
                for name, ref in _map_entry(obj, "refs").items()
            }
        except ValidationError as exc:
            raise MetadataCorrupt(f"malformed table metadata: {exc}") from exc

        md = cls(
            format_version=version,
            table_uuid=str(obj.get("table-uuid", "")),
            location=str(obj.get("location", "")),
            last_updated_ms=_int_entry(obj, "last-updated-ms", 0),
            last_sequence_number=_int_entry(obj, "last-sequence-number", 0),
            current_snapshot_id=current_snapshot_id,
            current_schema_id=current_schema_id,
            schemas=schemas,
            snapshots=snapshots,
            partition_specs=specs,
            default_spec_id=_int_entry(obj, "default-spec-id", specs[0].spec_id),
            sort_orders=sort_orders,
            default_sort_order_id=_int_entry(obj, "default-sort-order-id", 0),
            properties={str(k): str(v) for k, v in _map_entry(obj, "properties").items()},
            snapshot_log=snapshot_log,
            refs=refs,
        )
        md.check_integrity()
        return md

    def check_integrity(self) -> None:
        """
        Verify cross-references between metadata entities.

        Raises:
            MetadataCorrupt: Naming the first broken reference found.
        """
        spec_ids = [s.spec_id for s in self.partition_specs]
        if len(set(spec_ids)) != len(spec_ids):
            raise MetadataCorrupt("duplicate partition spec ids")
        order_ids = [o.order_id for o in self.sort_orders]
        if len(set(order_ids)) != len(order_ids):
            raise MetadataCorrupt("duplicate sort order ids")

        if self.current_schema_id not in self._schemas_by_id:
            raise MetadataCorrupt(f"current-schema-id {self.current_schema_id} is not a known schema")
        if self.partition_specs and self.default_spec_id not in spec_ids:
            raise MetadataCorrupt(f"default-spec-id {self.default_spec_id} is not a known spec")
        if self.sort_orders and self.default_sort_order_id not in order_ids:
            raise MetadataCorrupt(
                f"default-sort-order-id {self.default_sort_order_id} is not a known sort order"
            )
        if self.current_snapshot_id is not None and self.current_snapshot_id not in self._snapshots_by_id:
            raise MetadataCorrupt(
                f"current-snapshot-id {self.current_snapshot_id} is not a known snapshot"
            )
        for snap in self.snapshots:
            if snap.schema_id not in self._schemas_by_id:
                raise MetadataCorrupt(
                    f"snapshot {snap.snapshot_id} references unknown schema {snap.schema_id}"
                )
            if snap.manifest_list is None and snap.manifests is None:
                raise MetadataCorrupt(f"snapshot {snap.snapshot_id} has no manifest list")
        for name, ref in self.refs.items():
            if ref.snapshot_id not in self._snapshots_by_id:
                raise MetadataCorrupt(f"ref {name!r} points at unknown snapshot {ref.snapshot_id}")

    # ---- lookups -----------------------------------------------------------

    def snapshot_by_id(self, snapshot_id: int) -> Snapshot:
        """
        Raises:
            SnapshotNotFound: If no snapshot has this id.
        """
        snap = self._snapshots_by_id.get(snapshot_id)
        if snap is None:
            raise SnapshotNotFound(f"snapshot {snapshot_id} not found", snapshot_id=snapshot_id)
        return snap

    def has_snapshot(self, snapshot_id: int) -> bool:
        return snapshot_id in self._snapshots_by_id

    def current_snapshot(self) -> Snapshot | None:
        if self.current_snapshot_id is None:
            return None
        return self._snapshots_by_id[self.current_snapshot_id]

    def manifest_list_for(self, snapshot: Snapshot) -> str | None:
        """Manifest list location of ``snapshot`` (None for v1 inline manifests)."""
        return snapshot.manifest_list

    def schema_by_id(self, schema_id: int) -> Schema:
        """
        Raises:
            SchemaNotFound: If the schema version is absent.
        """
        sc = self._schemas_by_id.get(schema_id)
        if sc is None:
            raise SchemaNotFound(f"schema {schema_id} not found", schema_id=schema_id)
        return sc

    def current_schema(self) -> Schema:
        return self._schemas_by_id[self.current_schema_id]

    def schema_for_snapshot(self, snapshot: Snapshot) -> Schema:
        if snapshot.schema_id is None:
            return self.current_schema()
        return self.schema_by_id(snapshot.schema_id)

    def spec_by_id(self, spec_id: int) -> PartitionSpec:
        """
        Raises:
            MetadataCorrupt: If a manifest references a spec absent from metadata.
        """
        for spec in self.partition_specs:
            if spec.spec_id == spec_id:
                return spec
        raise MetadataCorrupt(f"partition spec {spec_id} not found")

    def default_spec(self) -> PartitionSpec:
        return self.spec_by_id(self.default_spec_id)

    def sort_order_by_id(self, order_id: int) -> SortOrder:
        for order in self.sort_orders:
            if order.order_id == order_id:
                return order
        raise MetadataCorrupt(f"sort order {order_id} not found")

    def snapshot_for_ref(self, name: str) -> Snapshot:
        """
        Snapshot a branch or tag points at.

        ``main`` falls back to the current snapshot for tables written without refs.

        Raises:
            SnapshotNotFound: If the ref does not exist (or ``main`` on an empty table).
        """
        ref = self.refs.get(name)
        if ref is not None:
            return self.snapshot_by_id(ref.snapshot_id)
        if name == MAIN_BRANCH:
            current = self.current_snapshot()
            if current is not None:
                return current
        raise SnapshotNotFound(f"ref {name!r} not found")

    def snapshot_as_of(self, timestamp_ms: int) -> Snapshot:
        """
        Latest current snapshot committed at or before ``timestamp_ms``.

        Follows the snapshot log when present (it records which snapshot was current
        and when), otherwise snapshot commit times.

        Raises:
            SnapshotNotFound: If no snapshot existed yet at that time.
        """
        if self.snapshot_log:
            candidates = [
                (e.timestamp_ms, i, e.snapshot_id)
                for i, e in enumerate(self.snapshot_log)
                if e.timestamp_ms <= timestamp_ms and e.snapshot_id in self._snapshots_by_id
            ]
        else:
            candidates = [
                (s.timestamp_ms, s.sequence_number, s.snapshot_id)
                for s in self.snapshots
                if s.timestamp_ms <= timestamp_ms
            ]
        if not candidates:
            raise SnapshotNotFound(f"no snapshot at or before timestamp {timestamp_ms}")
        *_, snapshot_id = max(candidates)
        return self._snapshots_by_id[snapshot_id]

    def snapshots_by_time(self) -> list[Snapshot]:
        return sorted(self.snapshots, key=lambda s: (s.timestamp_ms, s.sequence_number))

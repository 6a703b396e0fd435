"""
Snapshot resolution (time travel) into scan plans.

Turns "the table as of snapshot S" into a ScanPlan: the effective schema of S plus
the ordered data files that are live at S, with partition values named by the spec
of the manifest that recorded them.

Responsibilities
- Select the target snapshot (current, explicit id, ref name or timestamp).
- Walk lineage before loading anything so a parent cycle fails fast.
- Load the manifest list and manifests through a ManifestLoader collaborator.
- Split entries into live tasks (added + existing), deleted tasks (kept for file
  inspection) and delete files (listed, never applied).

Import DAG discipline
- Zero-IO. Byte access lives behind the ManifestLoader protocol implemented by
  icepeek.io.manifests.

Notes
- Resolving the same snapshot twice yields equal plans; resolution has no side effects
  beyond the loader's reads.
- Statistics stay keyed by field id. ``ScanTask.stats_by_name`` renders them with
  the names of a given schema version, so a renamed column shows its stats under
  the name in force at the snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from .constants import MANIFEST_CONTENT_DATA
from .lineage import lineage_depth
from .metadata import DataFile, ManifestEntry, ManifestListEntry, PartitionSpec, Snapshot, TableMetadata
from .schema import Schema, resolve_effective_schema
from .types import decode_bound

__all__ = [
    "ManifestLoader",
    "ColumnStats",
    "ScanTask",
    "ScanPlan",
    "resolve_scan_plan",
    "select_snapshot",
]

logger = logging.getLogger(__name__)


class ManifestLoader(Protocol):
    """Metadata source collaborator: returns already-decoded manifest structures."""

    def read_manifest_list(self, location: str) -> list[ManifestListEntry]: ...

    def read_manifest(self, location: str) -> list[ManifestEntry]: ...


@dataclass(frozen=True, slots=True)
class ColumnStats:
    """Per-column statistics of one file, as rendered for one schema version."""

    field_id: int
    size: int | None = None
    value_count: int | None = None
    null_count: int | None = None
    nan_count: int | None = None
    lower: Any = None
    upper: Any = None


@dataclass(frozen=True, slots=True)
class ScanTask:
    """
    One file of a scan plan.

    Attributes:
        data_file (DataFile): File description with id-keyed statistics.
        status (str): ``added`` / ``existing`` / ``deleted``.
        partition_values (dict[str, Any]): Values named by the manifest's own spec.
        spec_id (int): Spec that produced ``partition_values``.
        manifest_path (str): Manifest the entry was read from.
        snapshot_id (int | None): Snapshot that added or deleted the file.
    """

    data_file: DataFile
    status: str
    partition_values: dict[str, Any]
    spec_id: int
    manifest_path: str
    snapshot_id: int | None = None

    @property
    def file_path(self) -> str:
        return self.data_file.file_path

    @property
    def file_format(self) -> str:
        return self.data_file.file_format

    @property
    def record_count(self) -> int:
        return self.data_file.record_count

    @property
    def file_size_in_bytes(self) -> int:
        return self.data_file.file_size_in_bytes

    def stats_by_id(self) -> dict[int, ColumnStats]:
        df = self.data_file
        ids: set[int] = set()
        for m in (
            df.column_sizes,
            df.value_counts,
            df.null_value_counts,
            df.nan_value_counts,
            df.lower_bounds,
            df.upper_bounds,
        ):
            if m:
                ids.update(m)
        return {
            fid: ColumnStats(
                field_id=fid,
                size=(df.column_sizes or {}).get(fid),
                value_count=(df.value_counts or {}).get(fid),
                null_count=(df.null_value_counts or {}).get(fid),
                nan_count=(df.nan_value_counts or {}).get(fid),
                lower=(df.lower_bounds or {}).get(fid),
                upper=(df.upper_bounds or {}).get(fid),
            )
            for fid in sorted(ids)
        }

    def stats_by_name(self, schema: Schema, *, decode: bool = True) -> dict[str, ColumnStats]:
        """
        Statistics keyed by the dotted field names of ``schema``.

        Args:
            schema (Schema): Schema version to name columns with (normally the
                plan's effective schema).
            decode (bool): Decode binary bounds with the field's type.

        Returns:
            dict[str, ColumnStats]: One entry per field id known to ``schema``;
            statistics of dropped columns are omitted.
        """
        out: dict[str, ColumnStats] = {}
        for fid, st in self.stats_by_id().items():
            path = schema.path_of(fid)
            f = schema.field_by_id(fid)
            if path is None or f is None:
                continue
            if decode:
                st = ColumnStats(
                    field_id=fid,
                    size=st.size,
                    value_count=st.value_count,
                    null_count=st.null_count,
                    nan_count=st.nan_count,
                    lower=decode_bound(f.field_type, st.lower),
                    upper=decode_bound(f.field_type, st.upper),
                )
            out[path] = st
        return out


@dataclass(frozen=True, slots=True)
class ScanPlan:
    """
    Resolved view of the table at one snapshot.

    Attributes:
        snapshot (Snapshot | None): Resolved snapshot; None for an empty table.
        schema (Schema): Effective schema for rows and filter coercion.
        manifests (tuple[ManifestListEntry, ...]): Manifest list of the snapshot.
        tasks (tuple[ScanTask, ...]): Live data files in manifest order.
        deleted (tuple[ScanTask, ...]): Entries with status deleted.
        delete_files (tuple[ScanTask, ...]): Live entries of delete manifests.
    """

    snapshot: Snapshot | None
    schema: Schema
    manifests: tuple[ManifestListEntry, ...] = ()
    tasks: tuple[ScanTask, ...] = ()
    deleted: tuple[ScanTask, ...] = ()
    delete_files: tuple[ScanTask, ...] = ()

    @property
    def snapshot_id(self) -> int | None:
        return self.snapshot.snapshot_id if self.snapshot is not None else None

    @property
    def total_records(self) -> int:
        return sum(t.record_count for t in self.tasks)

    def files_view(self, *, include_deleted: bool = False) -> list[dict[str, Any]]:
        """Flat rows for file listings (path, format, records, size, status, partition)."""
        tasks = list(self.tasks)
        if include_deleted:
            tasks.extend(self.deleted)
            tasks.extend(self.delete_files)
        return [
            {
                "file_path": t.file_path,
                "file_format": t.file_format,
                "record_count": t.record_count,
                "file_size_in_bytes": t.file_size_in_bytes,
                "status": t.status,
                "content": t.data_file.content,
                "spec_id": t.spec_id,
                "partition": dict(t.partition_values),
            }
            for t in tasks
        ]


# ============================================================================
# Resolution
# ============================================================================


def select_snapshot(
    metadata: TableMetadata,
    snapshot_id: int | None = None,
    *,
    ref: str | None = None,
    as_of_ms: int | None = None,
) -> Snapshot | None:
    """
    Pick the target snapshot; None means "current" on a table with no snapshots.

    Raises:
        ValueError: If more than one selector is given.
        SnapshotNotFound: If the selected snapshot does not exist.
    """
    given = [s for s in (snapshot_id, ref, as_of_ms) if s is not None]
    if len(given) > 1:
        raise ValueError("pass at most one of snapshot_id, ref, as_of_ms")
    if snapshot_id is not None:
        return metadata.snapshot_by_id(snapshot_id)
    if ref is not None:
        return metadata.snapshot_for_ref(ref)
    if as_of_ms is not None:
        return metadata.snapshot_as_of(as_of_ms)
    return metadata.current_snapshot()


def _partition_values(spec: PartitionSpec, raw: dict[str, Any] | list[Any]) -> dict[str, Any]:
    if isinstance(raw, list):
        return {pf.name: (raw[i] if i < len(raw) else None) for i, pf in enumerate(spec.fields)}
    return {pf.name: raw.get(pf.name) for pf in spec.fields}


def resolve_scan_plan(
    metadata: TableMetadata,
    manifests: ManifestLoader,
    snapshot_id: int | None = None,
    *,
    ref: str | None = None,
    as_of_ms: int | None = None,
) -> ScanPlan:
    """
    Resolve a snapshot into a ScanPlan.

    Args:
        metadata (TableMetadata): Loaded table metadata.
        manifests (ManifestLoader): Source of decoded manifest lists and manifests.
        snapshot_id (int | None): Explicit snapshot; default is the current snapshot.
        ref (str | None): Branch or tag name instead of an id.
        as_of_ms (int | None): Time travel by timestamp instead of an id.

    Returns:
        ScanPlan: Effective schema and files of the snapshot. A table without
        snapshots resolves "current" to an empty plan over the current schema.

    Raises:
        SnapshotNotFound: If the selected snapshot does not exist.
        SchemaNotFound: If the snapshot's schema version is absent.
        MetadataCorrupt: On a lineage cycle or a manifest naming an unknown spec.
    """
    snapshot = select_snapshot(metadata, snapshot_id, ref=ref, as_of_ms=as_of_ms)
    if snapshot is None:
        logger.debug("table %s has no snapshots; resolving empty plan", metadata.table_uuid)
        return ScanPlan(snapshot=None, schema=metadata.current_schema())

    depth = lineage_depth(metadata, snapshot.snapshot_id)
    schema_id = metadata.current_schema_id if snapshot.schema_id is None else snapshot.schema_id
    schema = resolve_effective_schema(metadata, schema_id)
    logger.debug(
        "resolving snapshot %s (lineage depth %d, schema %d)",
        snapshot.snapshot_id,
        depth,
        schema.schema_id,
    )

    list_location = metadata.manifest_list_for(snapshot)
    if list_location is not None:
        entries = manifests.read_manifest_list(list_location)
    else:
        entries = [
            ManifestListEntry(manifest_path=p, partition_spec_id=metadata.default_spec_id)
            for p in snapshot.manifests or ()
        ]

    tasks: list[ScanTask] = []
    deleted: list[ScanTask] = []
    delete_files: list[ScanTask] = []
    for entry in entries:
        spec = metadata.spec_by_id(entry.partition_spec_id)
        rows = manifests.read_manifest(entry.manifest_path)
        logger.debug("manifest %s: %d entries (spec %d)", entry.manifest_path, len(rows), spec.spec_id)
        if entry.content != MANIFEST_CONTENT_DATA:
            logger.warning(
                "delete manifest %s is listed but deletes are not applied to rows",
                entry.manifest_path,
            )
        for me in rows:
            task = ScanTask(
                data_file=me.data_file,
                status=me.status_name,
                partition_values=_partition_values(spec, me.data_file.partition),
                spec_id=spec.spec_id,
                manifest_path=entry.manifest_path,
                snapshot_id=me.snapshot_id,
            )
            if not me.is_alive:
                deleted.append(task)
            elif entry.content != MANIFEST_CONTENT_DATA:
                delete_files.append(task)
            else:
                tasks.append(task)

    return ScanPlan(
        snapshot=snapshot,
        schema=schema,
        manifests=tuple(entries),
        tasks=tuple(tasks),
        deleted=tuple(deleted),
        delete_files=tuple(delete_files),
    )

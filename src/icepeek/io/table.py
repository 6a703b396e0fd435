"""
Table facade for icepeek.io.

Binds loaded metadata to a manifest source and a row source and exposes the inspection
operations: snapshot history, schema versions and diffs, file listings, column
statistics and filtered reads.

Source of truth
- Metadata entities and resolution: icepeek.core (metadata, schema, plan)
- Filter language: icepeek.expr
- Defaults: icepeek.io.config.InspectorSettings

Import DAG discipline:
- Depends only on stdlib, polars, and icepeek.core / icepeek.expr / icepeek.io modules.
- Must not import the CLI.
"""

from __future__ import annotations

import logging
from typing import Any

import polars as pl

from ..core.metadata import TableMetadata
from ..core.plan import ManifestLoader, ScanPlan, resolve_scan_plan
from ..core.schema import Schema, SchemaDiff, diff
from ..expr.evaluator import Predicate, compile_filter
from .config import InspectorSettings
from .locate import load_metadata, table_dir_for
from .manifests import FileManifestSource
from .read import ReadResult, count_visible
from .read import read as _read
from .rows import ParquetRowSource, RowSource

__all__ = ["Table"]

logger = logging.getLogger(__name__)


class Table:
    """
    Facade over one table's metadata, manifests and data files.

    Notes:
        - Plans are cached per resolved snapshot id; metadata is immutable, so a cached
          plan is identical to a fresh resolution.
        - Construction performs no I/O; use Table.load to read a table from disk.
    """

    def __init__(
        self,
        metadata: TableMetadata,
        manifests: ManifestLoader,
        rows: RowSource,
        settings: InspectorSettings | None = None,
        metadata_file: str = "",
    ) -> None:
        self.metadata = metadata
        self.manifests = manifests
        self.rows = rows
        self.settings = settings or InspectorSettings()
        self.metadata_file = metadata_file
        self._plans: dict[int | None, ScanPlan] = {}

    @classmethod
    def load(cls, path: str, settings: InspectorSettings | None = None) -> Table:
        """
        Load a table from a local directory or metadata file.

        Args:
            path (str): Table directory or ``*.metadata.json`` path.
            settings (InspectorSettings | None): Defaults to InspectorSettings.load().

        Raises:
            IoConfigError: For remote locations.
            IoMetadataError: If metadata cannot be located or read.
            MetadataCorrupt: If metadata is inconsistent.
        """
        settings = settings or InspectorSettings.load()
        metadata, metadata_file = load_metadata(path)
        local_dir = table_dir_for(metadata_file)
        remote = settings.allow_remote
        return cls(
            metadata,
            FileManifestSource(metadata.location, local_dir, allow_remote=remote),
            ParquetRowSource(metadata.location, local_dir, allow_remote=remote),
            settings,
            metadata_file,
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def plan(
        self,
        snapshot_id: int | None = None,
        *,
        ref: str | None = None,
        as_of_ms: int | None = None,
    ) -> ScanPlan:
        """Resolve (and cache) the scan plan of a snapshot; default is current."""
        if ref is None and as_of_ms is None and snapshot_id in self._plans:
            return self._plans[snapshot_id]
        plan = resolve_scan_plan(
            self.metadata, self.manifests, snapshot_id, ref=ref, as_of_ms=as_of_ms
        )
        self._plans[plan.snapshot_id] = plan
        if snapshot_id is None and ref is None and as_of_ms is None:
            self._plans[None] = plan
        return plan

    def schema(self, snapshot_id: int | None = None) -> Schema:
        """Effective schema of a snapshot (current schema for an empty table)."""
        if snapshot_id is None:
            current = self.metadata.current_snapshot()
            if current is None:
                return self.metadata.current_schema()
            return self.metadata.schema_for_snapshot(current)
        return self.metadata.schema_for_snapshot(self.metadata.snapshot_by_id(snapshot_id))

    def schema_diff(self, old_schema_id: int, new_schema_id: int) -> SchemaDiff:
        return diff(
            self.metadata.schema_by_id(old_schema_id), self.metadata.schema_by_id(new_schema_id)
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def history(self) -> pl.DataFrame:
        """One row per snapshot, oldest first."""
        current = self.metadata.current_snapshot_id
        rows: list[dict[str, Any]] = [
            {
                "snapshot_id": s.snapshot_id,
                "parent_id": s.parent_snapshot_id,
                "sequence_number": s.sequence_number,
                "committed_at": s.timestamp,
                "operation": s.operation,
                "schema_id": s.schema_id,
                "added_records": s.summary_int("added-records"),
                "deleted_records": s.summary_int("deleted-records"),
                "total_records": s.summary_int("total-records"),
                "is_current": s.snapshot_id == current,
            }
            for s in self.metadata.snapshots_by_time()
        ]
        return pl.DataFrame(
            rows,
            schema={
                "snapshot_id": pl.Int64,
                "parent_id": pl.Int64,
                "sequence_number": pl.Int64,
                "committed_at": pl.Datetime("us", "UTC"),
                "operation": pl.String,
                "schema_id": pl.Int64,
                "added_records": pl.Int64,
                "deleted_records": pl.Int64,
                "total_records": pl.Int64,
                "is_current": pl.Boolean,
            },
        )

    def files(
        self, snapshot_id: int | None = None, *, include_deleted: bool | None = None
    ) -> pl.DataFrame:
        """Data files of a snapshot; deleted entries and delete files on request."""
        if include_deleted is None:
            include_deleted = self.settings.include_deleted
        rows = self.plan(snapshot_id).files_view(include_deleted=include_deleted)
        return pl.DataFrame(
            [{**r, "partition": _render_partition(r["partition"])} for r in rows],
            schema={
                "file_path": pl.String,
                "file_format": pl.String,
                "record_count": pl.Int64,
                "file_size_in_bytes": pl.Int64,
                "status": pl.String,
                "content": pl.Int64,
                "spec_id": pl.Int64,
                "partition": pl.String,
            },
        )

    def manifest_list(self, snapshot_id: int | None = None) -> pl.DataFrame:
        """Manifests of a snapshot in manifest-list order, data and delete alike."""
        rows: list[dict[str, Any]] = [
            {
                "manifest_path": m.manifest_path,
                "content": "data" if m.is_data else "deletes",
                "spec_id": m.partition_spec_id,
                "sequence_number": m.sequence_number,
                "added_snapshot_id": m.added_snapshot_id,
                "added_files": m.added_files_count,
                "existing_files": m.existing_files_count,
                "deleted_files": m.deleted_files_count,
                "added_rows": m.added_rows_count,
                "existing_rows": m.existing_rows_count,
                "deleted_rows": m.deleted_rows_count,
            }
            for m in self.plan(snapshot_id).manifests
        ]
        return pl.DataFrame(
            rows,
            schema={
                "manifest_path": pl.String,
                "content": pl.String,
                "spec_id": pl.Int64,
                "sequence_number": pl.Int64,
                "added_snapshot_id": pl.Int64,
                "added_files": pl.Int64,
                "existing_files": pl.Int64,
                "deleted_files": pl.Int64,
                "added_rows": pl.Int64,
                "existing_rows": pl.Int64,
                "deleted_rows": pl.Int64,
            },
        )

    def column_stats(self, snapshot_id: int | None = None) -> pl.DataFrame:
        """Per-file column statistics named by the snapshot's effective schema."""
        plan = self.plan(snapshot_id)
        rows: list[dict[str, Any]] = []
        for task in plan.tasks:
            stats = task.stats_by_name(plan.schema, decode=self.settings.decode_bounds)
            for name, st in stats.items():
                rows.append(
                    {
                        "file_path": task.file_path,
                        "column": name,
                        "field_id": st.field_id,
                        "value_count": st.value_count,
                        "null_count": st.null_count,
                        "nan_count": st.nan_count,
                        "lower": None if st.lower is None else str(st.lower),
                        "upper": None if st.upper is None else str(st.upper),
                    }
                )
        return pl.DataFrame(
            rows,
            schema={
                "file_path": pl.String,
                "column": pl.String,
                "field_id": pl.Int64,
                "value_count": pl.Int64,
                "null_count": pl.Int64,
                "nan_count": pl.Int64,
                "lower": pl.String,
                "upper": pl.String,
            },
        )

    def properties(self) -> dict[str, str]:
        return dict(sorted(self.metadata.properties.items()))

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------
    def compile(self, text: str | None, snapshot_id: int | None = None) -> Predicate | None:
        """Compile a filter against the snapshot's effective schema (None for no filter)."""
        return compile_filter(text, self.plan(snapshot_id).schema)

    def read(
        self,
        snapshot_id: int | None = None,
        *,
        filter: str | None = None,
        columns: list[str] | None = None,
        limit: int | None = None,
    ) -> ReadResult:
        """
        Read visible rows of a snapshot.

        Args:
            snapshot_id (int | None): Snapshot to read; default is current.
            filter (str | None): Filter text, compiled before any row is read.
            columns (list[str] | None): Output columns (default: all).
            limit (int | None): Row limit; defaults to settings.page_size, ignored
                when settings.no_limit is set.

        Raises:
            FilterError: For an invalid filter (nothing is read).
            SnapshotNotFound: For an unknown snapshot id.
        """
        plan = self.plan(snapshot_id)
        predicate = compile_filter(filter, plan.schema)
        effective = self.settings.effective_limit(limit)
        logger.debug(
            "reading snapshot %s (filter=%r, limit=%s)", plan.snapshot_id, filter, effective
        )
        return _read(plan, self.rows, predicate, columns, effective)

    def count(self, snapshot_id: int | None = None, *, filter: str | None = None) -> int:
        plan = self.plan(snapshot_id)
        return count_visible(plan, self.rows, compile_filter(filter, plan.schema))


def _render_partition(values: dict[str, Any]) -> str:
    return ", ".join(f"{k}={v}" for k, v in values.items())

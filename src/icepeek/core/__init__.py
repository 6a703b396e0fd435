"""
Core package aggregator for icepeek table-metadata contracts (types, schemas,
metadata entities, lineage, scan planning).

## Contracts (single source of truth)
- Types: type variants parsed from metadata JSON, promotion rules, literal coercion, bound decoding.
- Schemas: id-keyed field trees and evolution diffs.
- Metadata: snapshots, specs, sort orders, manifest entries and the TableMetadata aggregate.
- Lineage: cycle-checked parent walks over snapshot ids.
- Plan: snapshot resolution (time travel) into ScanPlans.

## Notes
- Zero-IO policy: stdlib + pydantic only; manifest bytes are read by icepeek.io.
- Field ids, not names, identify the same field across schema versions.
- Metadata is immutable once loaded; nothing in icepeek writes table state.

## Downstream usage
- icepeek.expr: binds filter identifiers against a ScanPlan's effective schema.
- icepeek.io: implements the ManifestLoader protocol and feeds rows for ScanTasks.
- icepeek.cli: renders snapshots, schemas, files and scans.

## Examples
```python
from icepeek.core.metadata import TableMetadata
from icepeek.core.plan import resolve_scan_plan

md = TableMetadata.from_json_obj(doc)  # doctest: +SKIP
plan = resolve_scan_plan(md, loader, snapshot_id=1)  # doctest: +SKIP
plan.schema.column_names  # doctest: +SKIP
```
"""

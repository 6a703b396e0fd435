"""
icepeek.io: Local IO layer for table inspection.

## Responsibilities
- Locate a table's current metadata file and load it into icepeek.core models.
- Read manifest lists and manifests (Avro via fastavro, or JSON) for snapshot resolution.
- Decode Parquet data files with pyarrow into rows keyed by the effective schema.
- Stream rows through compiled filters into polars frames with limit semantics.

## Public API
- InspectorSettings: Configuration (page size, limits, listing options); env > TOML > defaults.
- Table: Facade bound to one table: history/plan/schema/files/column_stats/read/count.

## Import DAG discipline
- Depends only on stdlib, polars/pyarrow/fastavro, and icepeek.core / icepeek.expr.
- MUST NOT import the CLI.

## Examples
```python
from icepeek.io import InspectorSettings, Table

table = Table.load("warehouse/db/events", InspectorSettings(page_size=100))  # doctest: +SKIP
table.history()  # doctest: +SKIP
table.read(filter="status = 'active' AND age > 30", columns=["id", "status"]).frame  # doctest: +SKIP
```

## Notes
- Object-storage locations raise IoConfigError unless settings.allow_remote maps them
  onto a local copy of the table; only local files are read.
- Delete files are listed in file views but never applied to rows.
"""

from __future__ import annotations

from .config import InspectorSettings
from .table import Table

__all__ = [
    "InspectorSettings",
    "Table",
]

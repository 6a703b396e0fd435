"""
Snapshot lineage walks over the id-addressed snapshot arena.

Snapshots reference parents by id only; walking a lineage is a loop over ids with a
visited set, so a corrupt parent cycle is detected instead of looping forever.

Notes:
    - A parent id that is absent from metadata ends the walk: expired snapshots are
      legal history truncation, not corruption.
    - Every walk is O(depth).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .errors import MetadataCorrupt
from .metadata import Snapshot, TableMetadata

__all__ = ["ancestors", "ancestor_ids", "is_ancestor_of", "lineage_depth"]

logger = logging.getLogger(__name__)


def ancestors(metadata: TableMetadata, snapshot_id: int) -> Iterator[Snapshot]:
    """
    Yield ``snapshot_id`` and its ancestors, child first.

    Args:
        metadata (TableMetadata): Loaded table metadata.
        snapshot_id (int): Starting snapshot.

    Yields:
        Snapshot: Each snapshot on the parent chain.

    Raises:
        SnapshotNotFound: If ``snapshot_id`` itself is unknown.
        MetadataCorrupt: If the parent chain revisits a snapshot.
    """
    current = metadata.snapshot_by_id(snapshot_id)
    seen: set[int] = set()
    while True:
        if current.snapshot_id in seen:
            raise MetadataCorrupt(
                f"snapshot lineage cycle detected at snapshot {current.snapshot_id}"
            )
        seen.add(current.snapshot_id)
        yield current
        parent_id = current.parent_snapshot_id
        if parent_id is None:
            return
        if not metadata.has_snapshot(parent_id):
            logger.debug(
                "lineage of %s ends at expired parent %s", snapshot_id, parent_id
            )
            return
        current = metadata.snapshot_by_id(parent_id)


def ancestor_ids(metadata: TableMetadata, snapshot_id: int) -> list[int]:
    return [s.snapshot_id for s in ancestors(metadata, snapshot_id)]


def is_ancestor_of(metadata: TableMetadata, ancestor_id: int, snapshot_id: int) -> bool:
    """True when ``ancestor_id`` is on the parent chain of ``snapshot_id`` (inclusive)."""
    return any(s.snapshot_id == ancestor_id for s in ancestors(metadata, snapshot_id))


def lineage_depth(metadata: TableMetadata, snapshot_id: int) -> int:
    """Number of retained snapshots on the chain, the snapshot itself included."""
    return sum(1 for _ in ancestors(metadata, snapshot_id))

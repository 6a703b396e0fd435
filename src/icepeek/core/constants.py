"""
icepeek core defaults.

Defines paging defaults and table-format constants consumed by the resolver and
the IO layer. This module is zero-IO and uses only the Python standard library.

Notes:
    - DEFAULT_PAGE_SIZE caps the number of visible rows materialized per read
      unless the caller disables the limit.
    - Manifest entry status codes and file content codes follow the table
      format's manifest encoding (0/1/2).
"""

from __future__ import annotations

from typing import Final

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "SUPPORTED_FORMAT_VERSIONS",
    "NO_SNAPSHOT_ID",
    "MAIN_BRANCH",
    "STATUS_EXISTING",
    "STATUS_ADDED",
    "STATUS_DELETED",
    "CONTENT_DATA",
    "CONTENT_POSITION_DELETES",
    "CONTENT_EQUALITY_DELETES",
    "MANIFEST_CONTENT_DATA",
    "MANIFEST_CONTENT_DELETES",
]

# Rows materialized per read when no explicit limit is requested.
DEFAULT_PAGE_SIZE: Final[int] = 500

SUPPORTED_FORMAT_VERSIONS: Final[frozenset[int]] = frozenset({1, 2, 3})

# "current-snapshot-id": -1 marks a table without snapshots.
NO_SNAPSHOT_ID: Final[int] = -1

MAIN_BRANCH: Final[str] = "main"

# Manifest entry status.
STATUS_EXISTING: Final[int] = 0
STATUS_ADDED: Final[int] = 1
STATUS_DELETED: Final[int] = 2

# Data file content.
CONTENT_DATA: Final[int] = 0
CONTENT_POSITION_DELETES: Final[int] = 1
CONTENT_EQUALITY_DELETES: Final[int] = 2

# Manifest list entry content.
MANIFEST_CONTENT_DATA: Final[int] = 0
MANIFEST_CONTENT_DELETES: Final[int] = 1

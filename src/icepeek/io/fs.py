"""
Filesystem helpers for icepeek.io (file protocol baseline).

Responsibilities
- Turn table-format locations (plain paths, ``file:`` URIs) into local paths.
- Reject object-storage schemes that need an external reader.
- Relocate paths recorded under a table's original location onto where the table
  actually lives (tables copied or mounted elsewhere keep absolute paths in metadata).
- Provide minimal read/list helpers used by the locate, manifest and row readers.

Import DAG discipline
- stdlib-only; remote backends can be layered later behind the same interface.

Notes
- All helpers are synchronous and read-only.
"""

from __future__ import annotations

import os
from urllib.parse import unquote, urlparse

from .errors import IoConfigError

__all__ = [
    "REMOTE_SCHEMES",
    "is_remote",
    "to_local_path",
    "relocate",
    "exists",
    "listdir",
    "read_bytes",
    "read_text",
]

REMOTE_SCHEMES = frozenset({"s3", "s3a", "s3n", "gs", "gcs", "abfs", "abfss", "wasb", "wasbs", "oss", "hdfs"})


def is_remote(location: str) -> bool:
    return urlparse(location).scheme.lower() in REMOTE_SCHEMES


def to_local_path(location: str) -> str:
    """
    Convert a location to a local filesystem path.

    Args:
        location (str): Plain path, ``file:/p`` or ``file:///p`` URI.

    Returns:
        str: Local path.

    Raises:
        IoConfigError: For object-storage or other unsupported schemes.
    """
    parsed = urlparse(location)
    scheme = parsed.scheme.lower()
    if scheme in ("", "file"):
        if scheme == "":
            return location
        return unquote(parsed.path)
    # Windows drive letters parse as one-letter schemes.
    if len(scheme) == 1:
        return location
    if scheme in REMOTE_SCHEMES:
        raise IoConfigError(
            f"location {location!r} needs an object-storage reader; only local paths are supported"
        )
    raise IoConfigError(f"unsupported location scheme {scheme!r} in {location!r}")


def _relative_to(location: str, base: str) -> str | None:
    base = base.rstrip("/")
    if base and location.startswith(base + "/"):
        return location[len(base) + 1 :]
    return None


def relocate(
    location: str, table_location: str, local_table_dir: str, *, allow_remote: bool = False
) -> str:
    """
    Map ``location`` recorded under ``table_location`` onto ``local_table_dir``.

    Args:
        location (str): Path or URI recorded in metadata or a manifest.
        table_location (str): Table location recorded in metadata.
        local_table_dir (str): Where the table actually lives on this machine.
        allow_remote (bool): Map object-storage locations under ``table_location``
            onto the local copy instead of rejecting them.

    Returns:
        str: Local path. Locations that exist locally, or are not under
        ``table_location``, are returned unchanged (as local paths).

    Raises:
        IoConfigError: For object-storage locations unless ``allow_remote`` is set
            and the location is under ``table_location``.
    """
    if is_remote(location):
        rel = _relative_to(location, table_location) if allow_remote else None
        if rel is None or not local_table_dir:
            return to_local_path(location)
        return os.path.join(local_table_dir, unquote(rel))

    path = to_local_path(location)
    if os.path.exists(path) or not table_location or not local_table_dir or is_remote(table_location):
        return path
    rel = _relative_to(path, to_local_path(table_location))
    return os.path.join(local_table_dir, rel) if rel is not None else path


def exists(path: str) -> bool:
    return os.path.exists(path)


def listdir(path: str) -> list[str]:
    """
    List entry names in a directory (non-recursive).

    Returns:
        list[str]: Sorted entry names; [] if the directory does not exist.
    """
    try:
        return sorted(os.listdir(path))
    except FileNotFoundError:
        return []


def read_bytes(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


def read_text(path: str) -> str:
    with open(path, encoding="utf-8") as fh:
        return fh.read()

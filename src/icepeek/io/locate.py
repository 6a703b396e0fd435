"""
Locate and load a table's current metadata file.

Resolution order for a table path:
1) A path ending in ``.metadata.json`` is used as is.
2) ``<table>/metadata/version-hint.text`` names the version N -> ``v{N}.metadata.json``.
3) The highest-numbered ``v{N}.metadata.json`` in ``<table>/metadata/``.

Anything else raises IoMetadataError listing what was tried.
"""

from __future__ import annotations

import json
import logging
import os
import re

from ..core.metadata import TableMetadata
from .errors import IoMetadataError
from .fs import exists, listdir, read_text, to_local_path

__all__ = ["locate_metadata", "load_metadata", "table_dir_for"]

logger = logging.getLogger(__name__)

_VERSION_FILE_RE = re.compile(r"^v(\d+)\.metadata\.json$")


def table_dir_for(metadata_file: str) -> str:
    """Table directory of a metadata file (parent of its ``metadata/`` directory)."""
    meta_dir = os.path.dirname(os.path.abspath(metadata_file))
    if os.path.basename(meta_dir) == "metadata":
        return os.path.dirname(meta_dir)
    return meta_dir


def _highest_version(meta_dir: str) -> str | None:
    best: tuple[int, str] | None = None
    for name in listdir(meta_dir):
        m = _VERSION_FILE_RE.match(name)
        if m and (best is None or int(m.group(1)) > best[0]):
            best = (int(m.group(1)), name)
    return os.path.join(meta_dir, best[1]) if best else None


def locate_metadata(path: str) -> str:
    """
    Resolve the current metadata JSON file of a table.

    Args:
        path (str): Table directory, or a ``*.metadata.json`` file.

    Returns:
        str: Local path of the metadata file.

    Raises:
        IoConfigError: For remote locations.
        IoMetadataError: If no metadata file can be found.
    """
    local = to_local_path(path)
    if local.endswith(".metadata.json"):
        if not exists(local):
            raise IoMetadataError(f"metadata file not found: {local}")
        return local

    meta_dir = os.path.join(local, "metadata")
    hint = os.path.join(meta_dir, "version-hint.text")
    if exists(hint):
        version = read_text(hint).strip()
        candidate = os.path.join(meta_dir, f"v{version}.metadata.json")
        if exists(candidate):
            logger.debug("version hint %s -> %s", hint, candidate)
            return candidate
        logger.warning("version hint %s names missing file %s", hint, candidate)

    highest = _highest_version(meta_dir)
    if highest is not None:
        return highest

    raise IoMetadataError(
        f"no table metadata found at {path!r}; tried {hint} and v*.metadata.json in {meta_dir}"
    )


def load_metadata(path: str) -> tuple[TableMetadata, str]:
    """
    Locate, read and validate table metadata.

    Returns:
        tuple[TableMetadata, str]: Metadata and the file it was read from.

    Raises:
        IoMetadataError: If the file cannot be read or is not JSON.
        MetadataCorrupt: If the JSON is not valid table metadata.
    """
    metadata_file = locate_metadata(path)
    try:
        doc = json.loads(read_text(metadata_file))
    except OSError as exc:
        raise IoMetadataError(f"cannot read {metadata_file}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise IoMetadataError(f"{metadata_file} is not valid JSON: {exc}") from exc
    md = TableMetadata.from_json_obj(doc)
    logger.info(
        "loaded %s (format v%d, %d snapshots, %d schemas)",
        metadata_file,
        md.format_version,
        len(md.snapshots),
        len(md.schemas),
    )
    return md, metadata_file

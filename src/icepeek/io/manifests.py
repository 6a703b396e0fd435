"""
Manifest sources: read manifest lists and manifests into core models.

Two implementations of icepeek.core.plan.ManifestLoader:

- FileManifestSource reads local files, decoding Avro with fastavro and JSON with the
  stdlib json module (JSON manifests hold a list of records, or an object with an
  ``entries`` / ``manifests`` list). Decoded files are cached per location.
- InMemoryManifestSource serves records registered by location; tests and embedding
  hosts that already hold decoded manifests use it.

Notes:
    - Paths recorded under the table's original location are relocated onto the local
      table directory (see icepeek.io.fs.relocate).
    - Unreadable files raise IoMetadataError; decodable records that are not manifest
      entries raise MetadataCorrupt.
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Mapping
from typing import Any

import fastavro

from ..core.metadata import ManifestEntry, ManifestListEntry, parse_manifest, parse_manifest_list
from .errors import IoMetadataError
from .fs import read_bytes, relocate

__all__ = ["read_records", "FileManifestSource", "InMemoryManifestSource"]

logger = logging.getLogger(__name__)


def read_records(path: str) -> list[dict[str, Any]]:
    """
    Decode every record of an Avro or JSON manifest file.

    Raises:
        IoMetadataError: If the file cannot be read or decoded.
    """
    try:
        content = read_bytes(path)
    except OSError as exc:
        raise IoMetadataError(f"cannot read {path}: {exc}") from exc

    if path.endswith(".json"):
        try:
            doc = json.loads(content)
        except json.JSONDecodeError as exc:
            raise IoMetadataError(f"{path} is not valid JSON: {exc}") from exc
        if isinstance(doc, dict):
            doc = doc.get("entries", doc.get("manifests"))
        if not isinstance(doc, list):
            raise IoMetadataError(f"{path} does not hold a list of manifest records")
        return doc

    try:
        return list(fastavro.reader(io.BytesIO(content)))
    except (ValueError, EOFError) as exc:
        raise IoMetadataError(f"{path} is not a readable Avro file: {exc}") from exc


class FileManifestSource:
    """
    Local-file manifest source.

    Args:
        table_location (str): Table location recorded in metadata.
        local_table_dir (str): Where the table actually lives on this machine.
        allow_remote (bool): Map object-storage locations onto local_table_dir.
    """

    def __init__(
        self, table_location: str = "", local_table_dir: str = "", *, allow_remote: bool = False
    ) -> None:
        self.table_location = table_location
        self.local_table_dir = local_table_dir
        self.allow_remote = allow_remote
        self._cache: dict[str, list[dict[str, Any]]] = {}

    def _records(self, location: str) -> list[dict[str, Any]]:
        path = relocate(
            location, self.table_location, self.local_table_dir, allow_remote=self.allow_remote
        )
        if path not in self._cache:
            logger.debug("reading manifest file %s", path)
            self._cache[path] = read_records(path)
        return self._cache[path]

    def read_manifest_list(self, location: str) -> list[ManifestListEntry]:
        return parse_manifest_list(self._records(location))

    def read_manifest(self, location: str) -> list[ManifestEntry]:
        return parse_manifest(self._records(location))


class InMemoryManifestSource:
    """
    Manifest source over already-decoded records.

    Args:
        manifest_lists (Mapping[str, list]): Manifest-list location -> records or models.
        manifests (Mapping[str, list]): Manifest location -> records or models.
    """

    def __init__(
        self,
        manifest_lists: Mapping[str, list[Any]] | None = None,
        manifests: Mapping[str, list[Any]] | None = None,
    ) -> None:
        self.manifest_lists = dict(manifest_lists or {})
        self.manifests = dict(manifests or {})
        self.reads: list[str] = []

    def _get(self, table: dict[str, list[Any]], location: str) -> list[Any]:
        self.reads.append(location)
        try:
            return table[location]
        except KeyError as exc:
            raise IoMetadataError(f"no manifest data registered for {location!r}") from exc

    def read_manifest_list(self, location: str) -> list[ManifestListEntry]:
        records = self._get(self.manifest_lists, location)
        return [
            r if isinstance(r, ManifestListEntry) else parse_manifest_list([r])[0] for r in records
        ]

    def read_manifest(self, location: str) -> list[ManifestEntry]:
        records = self._get(self.manifests, location)
        return [r if isinstance(r, ManifestEntry) else parse_manifest([r])[0] for r in records]

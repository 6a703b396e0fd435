"""
Custom exceptions for the icepeek.io module.

Purpose
- Provide IO-layer specific error types for locating, reading and decoding table files.
- Keep icepeek.core as the source of truth for metadata and filter errors (see icepeek.core.errors).

Source of truth and boundaries
- icepeek.core.errors.MetadataCorrupt is raised when decoded metadata is structurally broken.
- icepeek.io raises Io* errors for filesystem/decoder concerns:
  - IoConfigError: invalid or unsupported configuration (settings, remote locations).
  - IoMetadataError: metadata, manifest list or manifest files cannot be located, read or parsed.
  - IoReadError: a data file cannot be opened or decoded.

Notes
- These exceptions do not perform any IO and are stdlib-only.
"""

from __future__ import annotations

__all__ = ["IoError", "IoConfigError", "IoMetadataError", "IoReadError"]


class IoError(Exception):
    """
    Base class for IO-related errors in icepeek.io.

    Notes:
        Use this as a catch-all for IO-layer failures, distinct from icepeek.core errors.
    """


class IoConfigError(IoError):
    """
    Raised when IO configuration is invalid or unsupported.

    Examples:
        - Page size < 1
        - Object-storage location (s3://, gs://) without a remote reader
    """


class IoMetadataError(IoError):
    """
    Raised when table metadata files are missing, unreadable or not decodable.

    Notes:
        Covers metadata JSON location (version hint, v*.metadata.json), manifest lists and
        manifests. Decoded-but-inconsistent content raises MetadataCorrupt instead.
    """


class IoReadError(IoError):
    """
    Raised when a data file cannot be read.

    Notes:
        Includes unsupported file formats and decoder failures from pyarrow.
    """

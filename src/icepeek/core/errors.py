"""
Core exception types raised by metadata resolution and filter compilation.

Provides typed exceptions for core-domain failures:
- MetadataCorrupt for broken cross-references inside loaded table metadata.
- SnapshotNotFound / SchemaNotFound for caller input that names a missing version.
- FilterError and its subclasses for malformed filter expressions.

Notes:
    - This module uses only the Python standard library and has no side effects.
    - Every filter error is raised while compiling a filter, before any row is
      evaluated; a filter either compiles completely or not at all.
    - The IO layer raises icepeek.io.errors.Io* errors for file/decoder failures.

Examples:
    Catch a filter failure at the API boundary.

    >>> from icepeek.core.errors import FilterError, UnknownColumn
    >>> try:
    ...     raise UnknownColumn("unknown column 'agee'", column="agee")
    ... except FilterError as e:
    ...     msg = str(e)
    >>> "agee" in msg
    True
"""

from __future__ import annotations

__all__ = [
    "IcepeekError",
    "MetadataCorrupt",
    "SnapshotNotFound",
    "SchemaNotFound",
    "FilterError",
    "FilterSyntaxError",
    "UnknownColumn",
    "TypeMismatch",
    "EmptyInList",
]


class IcepeekError(Exception):
    """Base class for every error raised by icepeek.core and icepeek.expr."""


class MetadataCorrupt(IcepeekError, ValueError):
    """Loaded metadata is structurally broken (missing cross-reference, lineage cycle, bad type)."""


class SnapshotNotFound(IcepeekError, LookupError):
    """
    Requested snapshot does not exist in table metadata.

    Attributes:
        snapshot_id (int | None): The id that was requested, when one was given.
    """

    def __init__(self, message: str, snapshot_id: int | None = None) -> None:
        super().__init__(message)
        self.snapshot_id = snapshot_id


class SchemaNotFound(IcepeekError, LookupError):
    """
    Requested schema version does not exist in table metadata.

    Attributes:
        schema_id (int | None): The schema version id that was requested.
    """

    def __init__(self, message: str, schema_id: int | None = None) -> None:
        super().__init__(message)
        self.schema_id = schema_id


class FilterError(IcepeekError, ValueError):
    """Base class for filter compilation failures (syntax, names, literal types)."""


class FilterSyntaxError(FilterError):
    """
    Malformed token stream in a filter expression.

    Attributes:
        position (int): 0-based character offset of the offending token.
        token (str): Text of the offending token ("" at end of input).
    """

    def __init__(self, message: str, position: int, token: str = "") -> None:
        super().__init__(f"{message} at position {position}" + (f" near {token!r}" if token else ""))
        self.position = position
        self.token = token


class UnknownColumn(FilterError):
    """Identifier in a filter does not name a field of the effective schema."""

    def __init__(self, message: str, column: str = "") -> None:
        super().__init__(message)
        self.column = column


class TypeMismatch(FilterError):
    """Filter literal cannot be coerced to the type of the column it is compared with."""


class EmptyInList(FilterError):
    """IN predicate with an empty literal list."""

    def __init__(self, message: str, position: int) -> None:
        super().__init__(f"{message} at position {position}")
        self.position = position

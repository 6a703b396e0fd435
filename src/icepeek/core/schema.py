"""
Schema versions and identifier-keyed schema evolution diffs.

A Schema is an ordered tuple of top-level Fields plus its schema-version id. Field
identity across versions is the integer field id: a rename keeps the id, so every
cross-version comparison in this module (and in the resolver's statistics views)
goes through ids, never names or positions.

Responsibilities
- Build Schema objects from metadata JSON and look fields up by id, name or dotted path.
- Project a schema onto a column subset (``select``).
- Diff two schema versions (added / removed / renamed / retyped / nullability).
- Resolve the schema version effective at a snapshot and list the evolution history.

Notes
- Zero-IO; stdlib only.
- Retyping is reported, never rejected: narrowing changes appear in
  ``SchemaDiff.narrowed`` so inspection views can flag them.
- Nested struct children participate in diffs with dotted names.

Examples
--------
>>> from icepeek.core.schema import Schema, diff
>>> from icepeek.core.types import Field, INT, LONG
>>> old = Schema(0, (Field(1, "amt", INT),))
>>> new = Schema(1, (Field(1, "amount", LONG),))
>>> d = diff(old, new)
>>> d.renamed
(('amt', 'amount'),)
>>> [str(t) for _, _, t in d.retyped]
['long']
>>> diff(new, new).is_empty
True
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .errors import MetadataCorrupt, UnknownColumn
from .types import Field, IcebergType, StructType, can_promote

if TYPE_CHECKING:
    from .metadata import TableMetadata

__all__ = [
    "Schema",
    "SchemaDiff",
    "diff",
    "resolve_effective_schema",
    "schema_history",
]


@dataclass(frozen=True, slots=True)
class Schema:
    """
    One schema version.

    Attributes:
        schema_id (int): Schema-version identifier referenced by snapshots.
        fields (tuple[Field, ...]): Top-level fields in declaration order.
        identifier_field_ids (tuple[int, ...]): Row-identity field ids (may be empty).

    Raises:
        MetadataCorrupt: If a field id appears twice anywhere in the field tree.
    """

    schema_id: int
    fields: tuple[Field, ...]
    identifier_field_ids: tuple[int, ...] = ()
    _by_id: dict[int, tuple[str, Field]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for path, f in _walk(self.fields, ""):
            if f.field_id in self._by_id:
                raise MetadataCorrupt(
                    f"schema {self.schema_id} has duplicate field id {f.field_id}"
                    f" ({self._by_id[f.field_id][0]!r} and {path!r})"
                )
            self._by_id[f.field_id] = (path, f)

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> Schema:
        """
        Build a Schema from its metadata JSON object.

        The object is a struct type with ``schema-id`` (absent in some v1 documents,
        treated as 0) and optional ``identifier-field-ids``.
        """
        if not isinstance(obj, dict) or not isinstance(obj.get("fields"), list):
            raise MetadataCorrupt(f"malformed schema {obj!r}")
        try:
            schema_id = int(obj.get("schema-id", 0))
            identifier_ids = tuple(int(i) for i in obj.get("identifier-field-ids") or [])
        except (TypeError, ValueError) as exc:
            raise MetadataCorrupt(
                f"malformed schema-id or identifier-field-ids in schema {obj.get('schema-id')!r}"
            ) from exc
        return cls(
            schema_id=schema_id,
            fields=tuple(Field.from_json_obj(f) for f in obj["fields"]),
            identifier_field_ids=identifier_ids,
        )

    def to_json_obj(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": "struct",
            "schema-id": self.schema_id,
            "fields": [f.to_json_obj() for f in self.fields],
        }
        if self.identifier_field_ids:
            out["identifier-field-ids"] = list(self.identifier_field_ids)
        return out

    # ---- lookups ---------------------------------------------------------

    @property
    def column_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def field_by_id(self, field_id: int) -> Field | None:
        hit = self._by_id.get(field_id)
        return hit[1] if hit else None

    def path_of(self, field_id: int) -> str | None:
        """Dotted name of a field id in this version (None when the id is absent)."""
        hit = self._by_id.get(field_id)
        return hit[0] if hit else None

    def field_by_name(self, name: str) -> Field | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def find_field(self, name: str) -> Field | None:
        """Resolve a top-level name or a dotted path into nested structs."""
        f = self.field_by_name(name)
        if f is not None or "." not in name:
            return f
        for path, candidate in self._by_id.values():
            if path == name:
                return candidate
        return None

    def all_fields(self) -> list[tuple[str, Field]]:
        """Depth-first (dotted name, Field) pairs over the whole struct tree."""
        return list(_walk(self.fields, ""))

    def select(self, names: Iterable[str]) -> Schema:
        """
        Project onto ``names`` keeping this schema's field order.

        Raises:
            UnknownColumn: If a name is not a top-level field.
        """
        wanted = list(names)
        for n in wanted:
            if self.field_by_name(n) is None:
                raise UnknownColumn(f"unknown column {n!r}", column=n)
        keep = set(wanted)
        fields = tuple(f for f in self.fields if f.name in keep)
        kept_ids = {sub.field_id for _, sub in _walk(fields, "")}
        return Schema(
            self.schema_id,
            fields,
            tuple(i for i in self.identifier_field_ids if i in kept_ids),
        )

    def __str__(self) -> str:
        lines = [f"schema {self.schema_id}"]
        lines.extend(f"  {f}" for f in self.fields)
        return "\n".join(lines)


def _walk(fields: Iterable[Field], prefix: str) -> Iterator[tuple[str, Field]]:
    for f in fields:
        path = f"{prefix}{f.name}"
        yield path, f
        if isinstance(f.field_type, StructType):
            yield from _walk(f.field_type.fields, path + ".")


# ============================================================================
# Diff
# ============================================================================


@dataclass(frozen=True, slots=True)
class SchemaDiff:
    """
    Result of comparing two schema versions by field id.

    Attributes:
        added (tuple[Field, ...]): Fields present only in the new version.
        removed (tuple[Field, ...]): Fields present only in the old version.
        renamed (tuple[tuple[str, str], ...]): (old dotted name, new dotted name).
        retyped (tuple[tuple[Field, IcebergType, IcebergType], ...]):
            (new field, old type, new type) for changed non-struct types.
        nullability (tuple[tuple[Field, bool, bool], ...]):
            (new field, old required, new required).
    """

    added: tuple[Field, ...] = ()
    removed: tuple[Field, ...] = ()
    renamed: tuple[tuple[str, str], ...] = ()
    retyped: tuple[tuple[Field, IcebergType, IcebergType], ...] = ()
    nullability: tuple[tuple[Field, bool, bool], ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.renamed or self.retyped or self.nullability)

    @property
    def widened(self) -> tuple[tuple[Field, IcebergType, IcebergType], ...]:
        return tuple(r for r in self.retyped if can_promote(r[1], r[2]))

    @property
    def narrowed(self) -> tuple[tuple[Field, IcebergType, IcebergType], ...]:
        """Retypes that are not legal widenings (reported, not rejected)."""
        return tuple(r for r in self.retyped if not can_promote(r[1], r[2]))

    def summary_lines(self) -> list[str]:
        lines: list[str] = []
        lines.extend(f"+ {f}" for f in self.added)
        lines.extend(f"- {f}" for f in self.removed)
        lines.extend(f"~ rename {a} -> {b}" for a, b in self.renamed)
        for f, old_t, new_t in self.retyped:
            tag = "widen" if can_promote(old_t, new_t) else "INCOMPATIBLE"
            lines.append(f"~ {tag} {f.name}: {old_t} -> {new_t}")
        for f, old_r, new_r in self.nullability:
            before = "required" if old_r else "optional"
            after = "required" if new_r else "optional"
            lines.append(f"~ {f.name}: {before} -> {after}")
        return lines


def diff(old: Schema, new: Schema) -> SchemaDiff:
    """
    Compare two schema versions, matching fields by id.

    Args:
        old (Schema): Earlier version.
        new (Schema): Later version.

    Returns:
        SchemaDiff: Changes from ``old`` to ``new``; ordered by each version's
        depth-first field order.

    Notes:
        Struct-typed fields are not reported as retyped; their children are
        compared individually.
    """
    old_map = dict((f.field_id, (p, f)) for p, f in old.all_fields())
    new_map = dict((f.field_id, (p, f)) for p, f in new.all_fields())

    added = tuple(f for fid, (_, f) in new_map.items() if fid not in old_map)
    removed = tuple(f for fid, (_, f) in old_map.items() if fid not in new_map)

    renamed: list[tuple[str, str]] = []
    retyped: list[tuple[Field, IcebergType, IcebergType]] = []
    nullability: list[tuple[Field, bool, bool]] = []
    for fid, (new_path, nf) in new_map.items():
        if fid not in old_map:
            continue
        old_path, of = old_map[fid]
        if of.name != nf.name:
            renamed.append((old_path, new_path))
        both_structs = isinstance(of.field_type, StructType) and isinstance(nf.field_type, StructType)
        if not both_structs and of.field_type != nf.field_type:
            retyped.append((nf, of.field_type, nf.field_type))
        if of.required != nf.required:
            nullability.append((nf, of.required, nf.required))

    return SchemaDiff(
        added=added,
        removed=removed,
        renamed=tuple(renamed),
        retyped=tuple(retyped),
        nullability=tuple(nullability),
    )


# ============================================================================
# Metadata-level helpers
# ============================================================================


def resolve_effective_schema(metadata: TableMetadata, schema_id: int) -> Schema:
    """
    Return the schema version ``schema_id`` from ``metadata``.

    Raises:
        SchemaNotFound: If the version id is absent from metadata.
    """
    return metadata.schema_by_id(schema_id)


def schema_history(metadata: TableMetadata) -> list[tuple[Schema, Schema, SchemaDiff]]:
    """Consecutive (older, newer, diff) triples over all schema versions in metadata order."""
    schemas = list(metadata.schemas)
    return [(a, b, diff(a, b)) for a, b in zip(schemas, schemas[1:])]

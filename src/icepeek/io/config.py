"""
Configuration for the icepeek.io module.

Defines InspectorSettings, a frozen dataclass carrying runtime configuration for table
inspection. Defaults are sourced from icepeek.core.constants.

Source of truth
- icepeek.core.constants.DEFAULT_PAGE_SIZE

Import DAG discipline
- Depends only on stdlib and icepeek.core.
- Does not import higher layers (cli).

Notes
- page_size caps the visible rows materialized per read; no_limit disables the cap.
- allow_remote lets a local copy of a table whose metadata records object-storage
  locations (s3://, gs:// ...) be read: such locations are mapped onto the local table
  directory. Without it they raise IoConfigError.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from ..core.constants import DEFAULT_PAGE_SIZE
from .errors import IoConfigError

__all__ = ["InspectorSettings"]

_TRUE_WORDS = {"1", "true", "t", "yes", "y", "on"}


def _bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in _TRUE_WORDS
    return False


@dataclass(frozen=True)
class InspectorSettings:
    """
    Runtime settings for table inspection.

    Attributes:
        page_size (int): Visible rows read when no explicit limit is given (>= 1).
        no_limit (bool): Read every visible row, ignoring page_size and explicit limits.
        include_deleted (bool): Include deleted entries and delete files in file listings.
        decode_bounds (bool): Decode binary lower/upper bounds in statistics views.
        allow_remote (bool): Map object-storage locations onto the local table directory.

    Raises:
        IoConfigError: If page_size < 1.

    Examples:
        >>> InspectorSettings(page_size=50).effective_limit()
        50
        >>> InspectorSettings(no_limit=True).effective_limit(10) is None
        True
    """

    page_size: int = DEFAULT_PAGE_SIZE
    no_limit: bool = False
    include_deleted: bool = False
    decode_bounds: bool = True
    allow_remote: bool = False

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise IoConfigError(f"page_size must be >= 1, got {self.page_size}")

    def effective_limit(self, limit: int | None = None) -> int | None:
        """Row limit for one read: None when unlimited, else ``limit`` or page_size."""
        if self.no_limit:
            return None
        return limit if limit is not None else self.page_size

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(
        cls, base: InspectorSettings, cfg: dict[str, Any] | None
    ) -> InspectorSettings:
        """Apply a loose config mapping onto settings; invalid values are ignored."""
        if not isinstance(cfg, dict):
            return base

        s = base
        if "page_size" in cfg:
            try:
                size = int(cfg["page_size"])
            except (TypeError, ValueError):
                size = 0
            if size >= 1:
                s = replace(s, page_size=size)
        for key in ("no_limit", "include_deleted", "decode_bounds", "allow_remote"):
            if key in cfg:
                s = replace(s, **{key: _bool(cfg[key])})
        return s

    @classmethod
    def from_env(
        cls, base: InspectorSettings | None = None, prefix: str = "ICEPEEK_"
    ) -> InspectorSettings:
        """
        Build settings from environment variables. Precedence is env > base (if provided) > defaults.

        Recognized variables:
            - ICEPEEK_PAGE_SIZE
            - ICEPEEK_NO_LIMIT (1/0/true/false/yes/no/on/off)
            - ICEPEEK_INCLUDE_DELETED
            - ICEPEEK_DECODE_BOUNDS
            - ICEPEEK_ALLOW_REMOTE
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for key in ("page_size", "no_limit", "include_deleted", "decode_bounds", "allow_remote"):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> InspectorSettings:
        """
        Build settings from a TOML file.

        Search order when `path` is None:
            1) ./icepeek.toml (with either an [inspector] table or direct keys)
            2) ./pyproject.toml under [tool.icepeek]

        Returns defaults if no file is present or a file cannot be parsed.
        """
        s = cls()

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "icepeek.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            try:
                with p.open("rb") as fh:
                    data = tomllib.load(fh)
            except (OSError, tomllib.TOMLDecodeError):
                continue
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("icepeek") if isinstance(tool, dict) else None
            elif isinstance(data.get("inspector"), dict):
                cfg = data["inspector"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> InspectorSettings:
        """
        Load settings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search defaults (icepeek.toml, pyproject.toml).
        """
        s = cls.from_toml(path)
        return cls.from_env(base=s)

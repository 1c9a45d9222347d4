"""
manifest.py

Responsibility: Load and parse a manifest file into typed `ManifestEntry` values.

The manifest is a JSON object keyed by dependency name (YAML is accepted for
`.yaml`/`.yml` files). Per-type constraints are checked by `validate_entry`
before any network work is done.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from fracture.errors import FractureError
from fracture.paths import ASSET_EXTENSION

BINARY = "binary"
SOURCE = "source"
REPOSITORY = "repository"
DEPENDENCY_TYPES = (BINARY, SOURCE, REPOSITORY)
SOURCE_FORMATS = ("tar.gz", "zip")


class ManifestError(FractureError):
    pass


class ManifestEntryError(ManifestError):
    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"{name}: {message}")
        self.name = name


@dataclass(frozen=True)
class ManifestEntry:
    """One declared dependency."""

    name: str
    path: str
    source: str
    type: str | None = None
    asset_name: str | None = None
    asset_extension: str | None = None
    asset_suffix: str | None = None
    private: bool = False
    extract: bool = False
    filename: str | None = None

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "ManifestEntry":
        if not isinstance(data, dict):
            raise ManifestEntryError(name, "entry must be an object/mapping")

        def _opt(key: str) -> str | None:
            value = data.get(key)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        def _flag(key: str) -> bool:
            value = data.get(key)
            if value is None:
                return False
            if not isinstance(value, bool):
                raise ManifestEntryError(name, f"`{key}` must be true or false, got {value!r}")
            return value

        path = _opt("path")
        source = _opt("source")
        if path is None:
            raise ManifestEntryError(name, "`path` is required")
        if source is None:
            raise ManifestEntryError(name, "`source` is required")
        dep_type = _opt("type")
        if dep_type is not None and dep_type not in DEPENDENCY_TYPES:
            raise ManifestEntryError(name, f"unknown type '{dep_type}' (expected one of {', '.join(DEPENDENCY_TYPES)})")

        return cls(
            name=name,
            path=path,
            source=source,
            type=dep_type,
            asset_name=_opt("asset_name"),
            asset_extension=_opt("asset_extension"),
            asset_suffix=_opt("asset_suffix"),
            private=_flag("private"),
            extract=_flag("extract"),
            filename=_opt("filename"),
        )


def infer_type(name: str) -> str:
    """
    Legacy name-based type inference, only used when explicitly enabled.
    """
    lowered = name.lower()
    if "provider" in lowered:
        return BINARY
    if "source" in lowered:
        return SOURCE
    return REPOSITORY


def resolve_type(entry: ManifestEntry, *, infer_types: bool = False) -> str:
    if entry.type is not None:
        return entry.type
    if not infer_types:
        raise ManifestEntryError(
            entry.name,
            f"`type` is required (one of {', '.join(DEPENDENCY_TYPES)}); "
            "pass --infer-types to guess it from the dependency name",
        )
    inferred = infer_type(entry.name)
    logger.warning(f"{entry.name}: no `type` given, inferred '{inferred}' from the dependency name")
    return inferred


def validate_entry(entry: ManifestEntry, dep_type: str) -> None:
    """
    Reject disallowed field combinations for `dep_type`.
    """
    if dep_type != SOURCE:
        return
    if entry.asset_name:
        raise ManifestEntryError(entry.name, "asset_name is not allowed for source type dependencies")
    if entry.asset_suffix:
        raise ManifestEntryError(entry.name, "asset_suffix is not allowed for source type dependencies")
    if entry.extract and entry.filename:
        raise ManifestEntryError(entry.name, "filename cannot be used with extract=true for source type dependencies")
    if entry.asset_extension and entry.asset_extension not in SOURCE_FORMATS:
        raise ManifestEntryError(
            entry.name,
            f"asset_extension for source type must be 'zip' or 'tar.gz', got '{entry.asset_extension}'",
        )
    if entry.extract and (ASSET_EXTENSION in entry.path or ASSET_EXTENSION in (entry.filename or "")):
        raise ManifestEntryError(entry.name, f"{ASSET_EXTENSION} placeholder cannot be used with extract=true")


def _read_manifest_data(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ManifestError(f"Manifest is not valid UTF-8: {path}: {e}") from e
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e
    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ManifestError(f"Malformed YAML in {path}: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Malformed JSON in {path}: {e}") from e


def load_manifest(manifest_path: str | Path) -> dict[str, ManifestEntry]:
    """
    Parse a manifest file into an ordered mapping of name -> `ManifestEntry`.

    Entry order follows the file, which is also the install order.
    """
    path = Path(manifest_path)
    if not path.exists():
        raise ManifestError(f"Manifest file does not exist: {path}")
    data = _read_manifest_data(path)
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest must be an object/mapping at the top level: {path}")
    return {str(name): ManifestEntry.from_dict(str(name), raw) for name, raw in data.items()}

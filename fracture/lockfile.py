"""
lockfile.py

Responsibility: persist install outcomes and detect drift against the previous run.

A lock file maps dependency name -> `LockEntry`. Reading never fails: a
missing or unreadable lock file is treated as empty.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from loguru import logger


@dataclass(frozen=True)
class LockEntry:
    name: str
    path: str
    source: str
    version: str
    hash: str
    type: str
    private: bool = False
    extract: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "path": self.path,
            "source": self.source,
            "version": self.version,
            "hash": self.hash,
            "type": self.type,
        }
        if self.private:
            out["private"] = True
        if self.extract:
            out["extract"] = True
        return out

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "LockEntry":
        return cls(
            name=str(data.get("name") or name),
            path=str(data.get("path") or ""),
            source=str(data.get("source") or ""),
            version=str(data.get("version") or ""),
            hash=str(data.get("hash") or ""),
            type=str(data.get("type") or ""),
            private=bool(data.get("private", False)),
            extract=bool(data.get("extract", False)),
        )


@dataclass(frozen=True)
class UpdateNotice:
    name: str
    old_hash: str | None
    new_hash: str

    def __str__(self) -> str:
        if self.old_hash is None:
            return f"New dependency {self.name}: {self.new_hash}"
        return f"Update available for {self.name}: {self.old_hash} -> {self.new_hash}"


def load_lock(lock_path: str | Path) -> dict[str, LockEntry]:
    path = Path(lock_path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable lock file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring lock file {path}: top level is not an object")
        return {}
    return {str(name): LockEntry.from_dict(str(name), raw) for name, raw in data.items() if isinstance(raw, dict)}


def save_lock(lock_path: str | Path, lock: Mapping[str, LockEntry]) -> None:
    path = Path(lock_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {name: entry.to_dict() for name, entry in lock.items()}
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    logger.debug(f"Lock file written to {path}")


def find_updates(previous: Mapping[str, LockEntry], current: Mapping[str, LockEntry]) -> list[UpdateNotice]:
    """
    Compare freshly produced lock entries against the previous lock file.

    Entries whose hash changed, or that were not locked before, yield a notice.
    """
    notices: list[UpdateNotice] = []
    for name, entry in current.items():
        old = previous.get(name)
        if old is None:
            notices.append(UpdateNotice(name=name, old_hash=None, new_hash=entry.hash))
        elif old.hash != entry.hash:
            notices.append(UpdateNotice(name=name, old_hash=old.hash, new_hash=entry.hash))
    return notices

"""
config.py

Responsibility: build the explicit `Settings` value every pipeline stage receives.

Nothing in fracture reads the working directory or the environment on its
own; the CLI builds one `Settings` and hands it down. Tests construct their
own against `tmp_path`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_MANIFEST = "fracture.json"
TOKEN_ENV_VAR = "FRACTURE_GITHUB_PAT"
SCRATCH_DIR_NAME = "tmp"


def lock_path_for(manifest_path: str | Path) -> Path:
    """
    Derive the lock file path from the manifest path.

    `fracture.json` -> `fracture-lock.json`, `deps/tools.yaml` -> `deps/tools-lock.json`.
    """
    path = Path(manifest_path)
    return path.with_name(f"{path.stem}-lock.json")


@dataclass(frozen=True)
class Settings:
    work_dir: Path
    manifest_path: Path
    lock_path: Path
    github_token: str = ""
    infer_types: bool = False

    @property
    def scratch_root(self) -> Path:
        return self.work_dir / SCRATCH_DIR_NAME

    @classmethod
    def from_environment(
        cls,
        config_path: str | Path | None = None,
        *,
        work_dir: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
        infer_types: bool = False,
    ) -> "Settings":
        env = os.environ if environ is None else environ
        root = Path(work_dir) if work_dir is not None else Path.cwd()
        manifest = Path(config_path or DEFAULT_MANIFEST)
        if not manifest.is_absolute():
            manifest = root / manifest
        return cls(
            work_dir=root,
            manifest_path=manifest,
            lock_path=lock_path_for(manifest),
            github_token=env.get(TOKEN_ENV_VAR, "").strip(),
            infer_types=infer_types,
        )

"""
fracture package

This package implements fracture, a CLI that installs GitHub release
binaries, GitHub source archives and git checkouts from a JSON manifest and
records the result in a lock file.

Key responsibilities are split across modules:
- `config.py`: explicit `Settings` (paths, token, flags) passed to every stage
- `manifest.py` / `lockfile.py`: manifest parsing, lock persistence, drift detection
- `paths.py`: placeholder expansion for destination paths
- `assets.py`: release asset selection
- `archive.py`: safe extraction and placement of archives
- `github_client.py` / `git.py`: GitHub REST + downloads, git subprocess calls
- `installer.py`: per-entry install pipeline and the install/update commands
- `selfupdate.py`: replacing a standalone fracture binary
- `cli.py`: CLI entrypoint
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"

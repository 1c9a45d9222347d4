"""
selfupdate.py

Responsibility: replace a standalone fracture binary with its latest release.

Only frozen single-file builds can replace themselves; a pip-installed
fracture is upgraded with pip instead.
"""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

from loguru import logger

from fracture.archive import extract_archive, is_supported_archive
from fracture.assets import best_platform_asset
from fracture.config import Settings
from fracture.errors import FractureError
from fracture.github_client import GitHubClient

REPO_OWNER = "glitch-vpn"
REPO_NAME = "fracture"

_MACHINE_TO_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
}


class SelfUpdateError(FractureError):
    pass


def current_platform() -> tuple[str, str]:
    """Return (os, arch) using release naming, e.g. ("linux", "amd64")."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    return system, _MACHINE_TO_ARCH.get(machine, machine)


def _pick_binary(extract_dir: Path) -> Path | None:
    for path in sorted(extract_dir.iterdir()):
        if not path.is_file():
            continue
        if os.access(path, os.X_OK) or REPO_NAME in path.name:
            return path
    return None


def _smoke_test(binary: Path) -> str:
    try:
        completed = subprocess.run(
            [str(binary), "version"],
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise SelfUpdateError(f"new binary failed to run: {e}") from e
    return completed.stdout


def self_update(
    settings: Settings,
    *,
    github: GitHubClient | None = None,
    executable: str | Path | None = None,
) -> str:
    """
    Download the release asset for this platform and swap it in for `executable`.

    Returns the installed release tag.
    """
    if executable is None:
        if not getattr(sys, "frozen", False):
            raise SelfUpdateError(
                "self-update only works for standalone fracture binaries; "
                "upgrade a Python install with `pip install --upgrade fracture`"
            )
        executable = sys.executable
    exe = Path(executable).resolve()
    gh = github if github is not None else GitHubClient(settings.github_token)

    logger.info("Checking for fracture updates...")
    release = gh.latest_release(REPO_OWNER, REPO_NAME)
    logger.info(f"Latest version: {release.tag_name}")

    os_name, arch = current_platform()
    logger.info(f"Current platform: {os_name}/{arch}")
    asset = best_platform_asset(release.assets, os_name, arch)
    if asset is None:
        raise SelfUpdateError(f"no suitable binary found for {os_name}/{arch}")
    logger.info(f"Selected asset: {asset.name}")

    with tempfile.TemporaryDirectory(prefix="fracture-update-", dir=exe.parent) as tmp:
        tmp_dir = Path(tmp)
        downloaded = gh.download_url(asset.browser_download_url, tmp_dir / asset.name)
        if is_supported_archive(asset.name):
            extract_dir = tmp_dir / "extracted"
            extract_archive(downloaded, extract_dir)
            new_binary = _pick_binary(extract_dir)
            if new_binary is None:
                raise SelfUpdateError(f"no executable binary found in {asset.name}")
        else:
            new_binary = downloaded
        new_binary.chmod(0o755)

        logger.info("Testing new binary...")
        logger.debug(_smoke_test(new_binary).strip())

        staged = exe.with_name(f"{exe.name}.tmp")
        shutil.move(str(new_binary), str(staged))
        try:
            os.replace(staged, exe)
        except OSError as e:
            staged.unlink(missing_ok=True)
            raise SelfUpdateError(f"failed to replace binary: {e}") from e

    logger.success(f"Successfully updated to {release.tag_name}")
    return release.tag_name

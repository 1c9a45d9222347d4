"""
assets.py

Responsibility: choose exactly one release asset for a manifest entry.

Selection narrows the release's asset list in three fixed stages:
1) `asset_name`: substring of the file name
2) `asset_extension`: anchored file-name ending (a leading `.` is implied)
3) `asset_suffix`: substring of the file name, must leave exactly one asset

Every failure lists the candidate names so the manifest can be fixed from
the error message alone. When several assets fit, nothing is picked.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from fracture.errors import FractureError
from fracture.github_client import RemoteAsset


class AssetSelectionError(FractureError):
    def __init__(self, message: str, candidates: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.candidates = tuple(candidates)


class NoAssetsMatchName(AssetSelectionError):
    pass


class NoAssetsMatchExtension(AssetSelectionError):
    pass


class NoAssetsMatchSuffix(AssetSelectionError):
    pass


class MissingRequiredSuffix(AssetSelectionError):
    pass


class AmbiguousAssetMatch(AssetSelectionError):
    pass


def _names(assets: Iterable[RemoteAsset]) -> list[str]:
    return [a.name for a in assets]


def _in_release(tag: str | None) -> str:
    return f" in release {tag}" if tag else ""


def select_asset(
    assets: Sequence[RemoteAsset],
    *,
    asset_name: str | None = None,
    asset_extension: str | None = None,
    asset_suffix: str | None = None,
    tag: str | None = None,
) -> RemoteAsset:
    """
    Return the single asset matching the filters or raise an `AssetSelectionError`.
    """
    candidates = list(assets)
    where = _in_release(tag)

    if asset_name:
        candidates = [a for a in candidates if asset_name in a.name]
        if not candidates:
            raise NoAssetsMatchName(
                f"no assets found containing asset_name '{asset_name}'{where}. "
                f"Available assets: {_names(assets)}",
                _names(assets),
            )

    if asset_extension:
        ext = asset_extension if asset_extension.startswith(".") else f".{asset_extension}"
        before = candidates
        candidates = [a for a in candidates if a.name.endswith(ext)]
        if not candidates:
            raise NoAssetsMatchExtension(
                f"no assets found with asset_extension '{asset_extension}'{where}. "
                f"Candidates: {_names(before)}",
                _names(before),
            )

    if not asset_suffix:
        raise MissingRequiredSuffix(
            f"asset_suffix is required for binary dependencies. Available assets: {_names(candidates)}",
            _names(candidates),
        )

    matching = [a for a in candidates if asset_suffix in a.name]
    if not matching:
        raise NoAssetsMatchSuffix(
            f"no assets found matching asset_suffix '{asset_suffix}'{where}. Candidates: {_names(candidates)}",
            _names(candidates),
        )
    if len(matching) > 1:
        raise AmbiguousAssetMatch(
            f"multiple assets found matching criteria. Found {len(matching)} assets: {_names(matching)}. "
            "Please refine asset_name, asset_extension, or asset_suffix to match exactly one asset",
            _names(matching),
        )
    return matching[0]


_ARCH_ALIASES: dict[str, tuple[str, ...]] = {
    "amd64": ("x86_64", "x64"),
    "arm64": ("aarch64",),
    "386": ("i386", "x86"),
}
_OS_ALIASES: dict[str, tuple[str, ...]] = {
    "darwin": ("macos", "mac"),
    "windows": ("win", "win32"),
}


def _platform_patterns(os_name: str, arch: str) -> list[str]:
    patterns = [f"{os_name}{sep}{arch}" for sep in ("_", "-", ".")]
    if os_name == "darwin":
        patterns += [f"{alias}{sep}{arch}" for alias in ("macos", "mac") for sep in ("_", "-")]
    if os_name == "windows":
        patterns += [f"{alias}{sep}{arch}" for alias in ("win", "win32") for sep in ("_", "-")]
        # Windows binaries are matched with their .exe ending first.
        patterns = [f"{p}.exe" for p in patterns] + patterns
    for alias in _ARCH_ALIASES.get(arch, ()):
        patterns += [f"{os_name}_{alias}", f"{os_name}-{alias}"]
        if os_name == "windows":
            patterns += [f"{os_name}_{alias}.exe", f"{os_name}-{alias}.exe"]
    return patterns


def best_platform_asset(assets: Sequence[RemoteAsset], os_name: str, arch: str) -> RemoteAsset | None:
    """
    Pick the release asset built for `os_name`/`arch` (Go-style names, e.g. linux/amd64).

    Patterns are tried in priority order; the first asset whose lowercased name
    contains a pattern wins. Falls back to any asset mentioning both the OS and
    the architecture (or one of their aliases).
    """
    for pattern in _platform_patterns(os_name, arch):
        needle = pattern.lower()
        for asset in assets:
            if needle in asset.name.lower():
                return asset

    os_names = (os_name, *_OS_ALIASES.get(os_name, ()))
    arch_names = (arch, *_ARCH_ALIASES.get(arch, ()))
    for asset in assets:
        lowered = asset.name.lower()
        if any(o in lowered for o in os_names) and any(a in lowered for a in arch_names):
            return asset
    return None

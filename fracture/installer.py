"""
installer.py

Responsibility: install manifest entries and keep the lock file current.

High-level flow per entry:
1) Resolve the entry type and reject disallowed field combinations
2) Resolve the remote version (release tag or commit hash)
3) Expand the destination path with that version
4) Fetch the artifact and place it (raw file, extracted archive, checkout)
5) Produce a `LockEntry`

Entries are processed one at a time in manifest order. During bulk
`install`/`update` a failing entry is logged and skipped; a targeted
`update <name>` propagates the failure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from fracture.archive import (
    ScratchArea,
    archive_format,
    extract_archive,
    is_supported_archive,
    place_directory,
    place_single_file,
    place_stripping_wrapper,
)
from fracture.assets import select_asset
from fracture.config import Settings
from fracture.errors import DependencyNotFound, FractureError, InstallError
from fracture.git import GitError, GitRepositoryProvider
from fracture.github_client import GitHubClient, Release, RemoteAsset, parse_repo, source_archive_url
from fracture.lockfile import LockEntry, UpdateNotice, find_updates, load_lock, save_lock
from fracture.manifest import (
    BINARY,
    REPOSITORY,
    SOURCE,
    ManifestEntry,
    ManifestEntryError,
    load_manifest,
    resolve_type,
    validate_entry,
)
from fracture.paths import expand_path, placeholders_in

UNKNOWN_VERSION = "unknown"
DEFAULT_SOURCE_FORMAT = "tar.gz"
_EXTENSION_RE = re.compile(r"^(?=.*[A-Za-z])[A-Za-z0-9]{1,10}$")


@dataclass
class InstallReport:
    installed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    updates: list[UpdateNotice] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _asset_extension(name: str) -> str:
    fmt = archive_format(name)
    if fmt is not None:
        return fmt
    # Dotted versions such as tool_1.2.0_linux_amd64 have no extension.
    suffix = Path(name).suffix[1:]
    return suffix if _EXTENSION_RE.match(suffix) else ""


class DependencyInstaller:
    def __init__(
        self,
        settings: Settings,
        *,
        github: GitHubClient | None = None,
        git: GitRepositoryProvider | None = None,
    ) -> None:
        self.settings = settings
        self.github = github if github is not None else GitHubClient(settings.github_token)
        self.git = git if git is not None else GitRepositoryProvider(settings.github_token)

    # -- single entry -------------------------------------------------------

    def install_entry(self, entry: ManifestEntry, version: str | None = None) -> LockEntry:
        """
        Install one entry and return its lock record.

        `version` pins a release tag (binary/source) or a git ref (repository)
        instead of resolving the latest one.
        """
        logger.info(f"Installing dependency: {entry.name}")
        try:
            dep_type = resolve_type(entry, infer_types=self.settings.infer_types)
            validate_entry(entry, dep_type)
            if dep_type == BINARY:
                lock_entry = self._install_binary(entry, version)
            elif dep_type == SOURCE:
                lock_entry = self._install_source(entry, version)
            else:
                lock_entry = self._install_repository(entry, version)
        except (InstallError, ManifestEntryError):
            raise
        except (FractureError, OSError) as e:
            raise InstallError(entry.name, str(e)) from e
        logger.success(f"Installed: {entry.name} (version: {lock_entry.version})")
        return lock_entry

    def _release(self, entry: ManifestEntry, owner: str, repo: str, version: str | None) -> Release:
        if version:
            return self.github.release_by_tag(owner, repo, version, entry.private)
        return self.github.latest_release(owner, repo, entry.private)

    def _expand(self, template: str, *, version: str, asset_extension: str = "", extract: bool = False) -> str:
        expanded = expand_path(template, version=version, asset_extension=asset_extension, extract=extract)
        if placeholders_in(template):
            logger.debug(f"Expanded path: {template} -> {expanded}")
        return expanded

    def _destination(self, expanded: str) -> Path:
        """Resolve an expanded path under the work dir, even when it starts with a separator."""
        return self.settings.work_dir / expanded.lstrip("/\\")

    def _download_asset(self, entry: ManifestEntry, owner: str, repo: str, asset: RemoteAsset, target: Path) -> Path:
        if entry.private:
            return self.github.download_asset(owner, repo, asset.id, target)
        return self.github.download_url(asset.browser_download_url, target)

    def _lock(self, entry: ManifestEntry, dep_type: str, path: str, version: str, hash_: str) -> LockEntry:
        return LockEntry(
            name=entry.name,
            path=path,
            source=entry.source,
            version=version,
            hash=hash_,
            type=dep_type,
            private=entry.private,
            extract=entry.extract,
        )

    def _install_binary(self, entry: ManifestEntry, version: str | None) -> LockEntry:
        owner, repo = parse_repo(entry.source)
        release = self._release(entry, owner, repo, version)
        tag = release.tag_name

        logger.info(f"Available assets in release {tag}:")
        for i, a in enumerate(release.assets):
            logger.info(f"  [{i}] {a.name} -> {a.browser_download_url}")

        asset = select_asset(
            release.assets,
            asset_name=entry.asset_name,
            asset_extension=entry.asset_extension,
            asset_suffix=entry.asset_suffix,
            tag=tag,
        )
        logger.info(f"Found matching asset: {asset.name}")

        ext = _asset_extension(asset.name)
        expanded = self._expand(entry.path, version=tag, asset_extension=ext, extract=entry.extract)
        target_dir = self._destination(expanded)
        filename = (
            self._expand(entry.filename, version=tag, asset_extension=ext, extract=entry.extract)
            if entry.filename
            else None
        )

        if entry.extract and is_supported_archive(asset.name):
            with ScratchArea(self.settings.scratch_root, entry.name) as scratch:
                archive = self._download_asset(entry, owner, repo, asset, scratch.download_dir / asset.name)
                extract_archive(archive, scratch.extract_dir)
                if filename:
                    place_single_file(scratch.extract_dir, target_dir, filename)
                else:
                    place_directory(scratch.extract_dir, target_dir)
        else:
            if entry.extract:
                logger.warning(f"extract flag is set but {asset.name} is not a supported archive format")
            self._download_asset(entry, owner, repo, asset, target_dir / (filename or asset.name))

        return self._lock(entry, BINARY, expanded, tag, tag)

    def _install_source(self, entry: ManifestEntry, version: str | None) -> LockEntry:
        owner, repo = parse_repo(entry.source)
        release = self._release(entry, owner, repo, version)
        tag = release.tag_name
        fmt = entry.asset_extension or DEFAULT_SOURCE_FORMAT

        expanded = self._expand(entry.path, version=tag, asset_extension=fmt, extract=entry.extract)
        target_dir = self._destination(expanded)
        url = source_archive_url(owner, repo, tag, fmt)
        default_name = f"{repo}-{tag}.{fmt}"
        logger.info(f"Downloading source code ({fmt}) from: {url}")

        if entry.extract:
            with ScratchArea(self.settings.scratch_root, entry.name) as scratch:
                archive = self.github.download_url(url, scratch.download_dir / default_name, entry.private)
                extract_archive(archive, scratch.extract_dir)
                place_stripping_wrapper(scratch.extract_dir, target_dir)
        else:
            archive_name = (
                self._expand(entry.filename, version=tag, asset_extension=fmt, extract=False)
                if entry.filename
                else default_name
            )
            self.github.download_url(url, target_dir / archive_name, entry.private)

        return self._lock(entry, SOURCE, expanded, tag, tag)

    def _install_repository(self, entry: ManifestEntry, version: str | None) -> LockEntry:
        try:
            commit = self.git.latest_commit(entry.source, entry.private)
        except GitError as e:
            logger.warning(f"Could not resolve latest commit for {entry.source}: {e}")
            commit = UNKNOWN_VERSION

        expanded = self._expand(entry.path, version=version or commit, extract=entry.extract)
        target = self._destination(expanded)
        self.git.clone_or_update(entry.source, target, entry.private)
        if version:
            self.git.checkout(target, version)
            commit = self.git.head(target)

        return self._lock(entry, REPOSITORY, expanded, version or commit, commit)

    # -- commands -----------------------------------------------------------

    def install(self) -> InstallReport:
        """
        Install every manifest entry, then write the lock file and report drift.

        Lock entries for names that failed or are no longer in the manifest are kept.
        """
        logger.info("Starting dependency installation...")
        manifest = load_manifest(self.settings.manifest_path)
        previous = load_lock(self.settings.lock_path)

        report = InstallReport()
        fresh: dict[str, LockEntry] = {}
        for name, entry in manifest.items():
            try:
                fresh[name] = self.install_entry(entry)
            except FractureError as e:
                logger.error(f"Installation error for {name}: {e}")
                report.failed[name] = str(e)
                continue
            report.installed.append(name)

        save_lock(self.settings.lock_path, {**previous, **fresh})

        report.updates = find_updates(previous, fresh)
        for notice in report.updates:
            logger.info(str(notice))
        if report.updates:
            logger.info("Updates available! Run 'fracture update' to update.")
        logger.info("Installation completed!")
        return report

    def update(self, name: str | None = None, version: str | None = None) -> InstallReport:
        """
        Reinstall one named entry (failures propagate) or all entries (failures are skipped).
        """
        logger.info("Starting dependency update...")
        manifest = load_manifest(self.settings.manifest_path)
        lock = load_lock(self.settings.lock_path)
        previous = dict(lock)
        report = InstallReport()

        if name:
            entry = manifest.get(name)
            if entry is None:
                raise DependencyNotFound(f"dependency {name} not found in {self.settings.manifest_path.name}")
            logger.info(f"Updating {name}...")
            lock[name] = self.install_entry(entry, version)
            report.installed.append(name)
        else:
            for dep_name, entry in manifest.items():
                logger.info(f"Updating {dep_name}...")
                try:
                    lock[dep_name] = self.install_entry(entry)
                except FractureError as e:
                    logger.error(f"Update error for {dep_name}: {e}")
                    report.failed[dep_name] = str(e)
                    continue
                report.installed.append(dep_name)

        save_lock(self.settings.lock_path, lock)
        report.updates = find_updates(previous, {n: lock[n] for n in report.installed})
        for notice in report.updates:
            logger.info(str(notice))
        logger.info("Update completed!")
        return report

"""
archive.py

Responsibility: turn a downloaded archive into the final on-disk layout.

Rules:
- Formats are chosen by file name: `.tar.gz`/`.tgz`, `.tar.xz`, `.zip`.
- Every member must land inside the extraction directory; one escaping
  member (absolute path or `..`) aborts the whole extraction.
- Regular files keep the permission bits recorded in the archive.
- Extraction happens in a per-entry scratch area; placement then moves the
  files into the destination (directory mode, single-file mode, or
  wrapper-stripping for GitHub source archives).

This module intentionally does NOT know about GitHub, git, or manifests.
"""

from __future__ import annotations

import contextlib
import lzma
import os
import re
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path
from types import TracebackType

from loguru import logger

from fracture.errors import FractureError

_FORMATS: tuple[tuple[str, str], ...] = (
    (".tar.gz", "tar.gz"),
    (".tgz", "tar.gz"),
    (".tar.xz", "tar.xz"),
    (".zip", "zip"),
)


class ArchiveError(FractureError):
    pass


class UnsupportedArchiveFormat(ArchiveError):
    pass


class PathTraversalRejected(ArchiveError):
    pass


class EmptyArchive(ArchiveError):
    pass


class UnexpectedFileCount(ArchiveError):
    def __init__(self, count: int) -> None:
        super().__init__(
            f"filename specified but archive contains {count} files (expected 1). "
            "Remove filename to extract all files to directory"
        )
        self.count = count


def archive_format(name: str | Path) -> str | None:
    """Return `tar.gz`, `tar.xz` or `zip` for a supported archive name, else None."""
    lowered = str(name).lower()
    for suffix, fmt in _FORMATS:
        if lowered.endswith(suffix):
            return fmt
    return None


def is_supported_archive(name: str | Path) -> bool:
    return archive_format(name) is not None


def _safe_destination(root: Path, member_name: str) -> Path:
    """
    Resolve `member_name` under `root`, rejecting anything that escapes it.
    """
    if not member_name or member_name.startswith(("/", "\\")) or re.match(r"^[A-Za-z]:", member_name):
        raise PathTraversalRejected(f"invalid file path in archive: {member_name!r}")
    candidate = os.path.normpath(os.path.join(root, member_name))
    if os.path.commonpath([str(root), candidate]) != str(root):
        raise PathTraversalRejected(f"invalid file path in archive: {member_name!r}")
    return Path(candidate)


def _make_dir(path: Path, mode: int | None) -> None:
    path.mkdir(parents=True, exist_ok=True)
    if mode:
        # Owner keeps rwx so files can still be written and moved out.
        path.chmod((mode & 0o777) | 0o700)


def _extract_tar(archive: Path, root: Path, mode: str) -> list[Path]:
    written: list[Path] = []
    with tarfile.open(archive, mode) as tf:
        for member in tf:
            dest = _safe_destination(root, member.name)
            if member.isdir():
                _make_dir(dest, member.mode)
            elif member.isreg():
                dest.parent.mkdir(parents=True, exist_ok=True)
                src = tf.extractfile(member)
                if src is None:
                    raise ArchiveError(f"cannot read {member.name!r} from {archive.name}")
                with src, dest.open("wb") as out:
                    shutil.copyfileobj(src, out)
                dest.chmod(member.mode & 0o777)
                written.append(dest)
            else:
                logger.debug(f"Skipping non-regular archive member {member.name}")
    return written


def _extract_zip(archive: Path, root: Path) -> list[Path]:
    written: list[Path] = []
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            dest = _safe_destination(root, info.filename)
            unix_mode = info.external_attr >> 16
            if info.is_dir():
                _make_dir(dest, stat.S_IMODE(unix_mode))
                continue
            if unix_mode and not stat.S_ISREG(unix_mode):
                logger.debug(f"Skipping non-regular archive member {info.filename}")
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, dest.open("wb") as out:
                shutil.copyfileobj(src, out)
            if stat.S_IMODE(unix_mode):
                dest.chmod(stat.S_IMODE(unix_mode))
            written.append(dest)
    return written


def extract_archive(archive_path: str | Path, target_dir: str | Path) -> list[Path]:
    """
    Extract `archive_path` into `target_dir` and return the regular files written.

    A failure partway through leaves whatever was already written; the caller
    must treat `target_dir` as invalid.
    """
    archive = Path(archive_path)
    root = Path(target_dir).resolve()
    fmt = archive_format(archive.name)
    if fmt is None:
        raise UnsupportedArchiveFormat(f"unsupported archive format: {archive.name}")

    logger.info(f"Extracting archive {archive.name} to {root}")
    root.mkdir(parents=True, exist_ok=True)
    try:
        if fmt == "zip":
            written = _extract_zip(archive, root)
        else:
            written = _extract_tar(archive, root, "r:gz" if fmt == "tar.gz" else "r:xz")
    except (tarfile.TarError, zipfile.BadZipFile, lzma.LZMAError, EOFError) as e:
        raise ArchiveError(f"failed to extract {archive.name}: {e}") from e
    return sorted(written)


def regular_files(root: str | Path) -> list[Path]:
    """
    Return all regular files under root, in deterministic relative-path order.
    """
    base = Path(root)
    files: list[Path] = []
    for dirpath, _dirs, filenames in os.walk(base):
        for name in filenames:
            path = Path(dirpath) / name
            if path.is_file() and not path.is_symlink():
                files.append(path)
    files.sort(key=lambda p: p.relative_to(base).as_posix())
    return files


def _move_tree(src_root: Path, dest_dir: Path, *, keep_dirs: bool) -> list[Path]:
    dest_dir.mkdir(parents=True, exist_ok=True)
    if keep_dirs:
        for dirpath, dirnames, _files in os.walk(src_root):
            for name in dirnames:
                src = Path(dirpath) / name
                _make_dir(dest_dir / src.relative_to(src_root), stat.S_IMODE(src.stat().st_mode))
    placed: list[Path] = []
    for path in regular_files(src_root):
        final = dest_dir / path.relative_to(src_root)
        final.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(path), str(final))
        placed.append(final)
    return placed


def place_directory(extract_dir: str | Path, dest_dir: str | Path) -> list[Path]:
    """Move every extracted file into dest_dir, keeping relative paths. Zero files is fine."""
    placed = _move_tree(Path(extract_dir), Path(dest_dir), keep_dirs=False)
    logger.info(f"Extracted {len(placed)} files to directory: {dest_dir}")
    return placed


def place_single_file(extract_dir: str | Path, dest_dir: str | Path, filename: str) -> Path:
    """
    Move the archive's only regular file to `dest_dir/filename`.
    """
    files = regular_files(extract_dir)
    logger.info(f"Found {len(files)} files in archive")
    if not files:
        raise EmptyArchive("no files found in archive")
    if len(files) > 1:
        raise UnexpectedFileCount(len(files))
    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    final = dest / filename
    shutil.move(str(files[0]), str(final))
    logger.info(f"Extracted single file as: {final}")
    return final


def place_stripping_wrapper(extract_dir: str | Path, dest_dir: str | Path) -> list[Path]:
    """
    Place a GitHub source archive, dropping its single top-level `owner-repo-hash` folder.

    Without exactly one top-level directory this is plain directory placement.
    """
    root = Path(extract_dir)
    entries = list(root.iterdir())
    if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
        logger.debug(f"Stripping wrapper directory {entries[0].name}")
        placed = _move_tree(entries[0], Path(dest_dir), keep_dirs=True)
    else:
        placed = _move_tree(root, Path(dest_dir), keep_dirs=True)
    logger.info(f"Extracted source code to directory: {dest_dir}")
    return placed


def _scratch_component(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "_", name)
    return "_" if cleaned in ("", ".", "..") else cleaned


class ScratchArea:
    """
    Per-entry working directory under the shared scratch root.

    Only `<scratch_root>/<name>` is removed on exit; the root itself is
    removed only if this area created it and it is empty.
    """

    def __init__(self, scratch_root: str | Path, name: str) -> None:
        self.root = Path(scratch_root)
        self.path = self.root / _scratch_component(name)
        self._created_root = False

    @property
    def download_dir(self) -> Path:
        return self.path / "download"

    @property
    def extract_dir(self) -> Path:
        return self.path / "extract"

    def __enter__(self) -> "ScratchArea":
        self._created_root = not self.root.exists()
        if self.path.exists():
            shutil.rmtree(self.path)
        self.path.mkdir(parents=True)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        shutil.rmtree(self.path, ignore_errors=True)
        if self._created_root:
            # rmdir refuses non-empty directories.
            with contextlib.suppress(OSError):
                self.root.rmdir()

from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path

import pytest
from loguru import logger

from fracture.config import Settings
from fracture.git import GitError
from fracture.github_client import Release, RemoteAsset, RepositoryNotFound


def make_tar(path: Path, files: dict[str, bytes], *, dirs: tuple[str, ...] = (), mode: str = "w:gz", file_mode: int = 0o644) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, mode) as tf:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tf.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = file_mode
            tf.addfile(info, io.BytesIO(data))
    return path


def make_zip(path: Path, files: dict[str, bytes], *, file_mode: int = 0o644) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (0o100000 | file_mode) << 16
            zf.writestr(info, data)
    return path


def asset(asset_id: int, name: str) -> RemoteAsset:
    return RemoteAsset(id=asset_id, name=name, browser_download_url=f"https://github.com/o/r/releases/download/v1/{name}")


class FakeGitHub:
    """In-memory stand-in for GitHubClient; payloads are keyed by URL or asset id."""

    def __init__(self, releases: dict[str, Release] | None = None, payloads: dict[object, bytes] | None = None) -> None:
        self.releases = releases or {}
        self.payloads = payloads or {}
        self.calls: list[tuple] = []

    def latest_release(self, owner: str, repo: str, private: bool = False) -> Release:
        self.calls.append(("latest_release", owner, repo, private))
        try:
            return self.releases[f"{owner}/{repo}"]
        except KeyError:
            raise RepositoryNotFound(f"repository {owner}/{repo} not found or no access") from None

    def release_by_tag(self, owner: str, repo: str, tag: str, private: bool = False) -> Release:
        self.calls.append(("release_by_tag", owner, repo, tag, private))
        release = self.releases[f"{owner}/{repo}"]
        return Release(tag_name=tag, assets=release.assets)

    def _write(self, key: object, target: Path) -> Path:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.payloads[key])
        target.chmod(0o755)
        return target

    def download_asset(self, owner: str, repo: str, asset_id: int, target: Path) -> Path:
        self.calls.append(("download_asset", owner, repo, asset_id))
        return self._write(asset_id, target)

    def download_url(self, url: str, target: Path, private: bool = False) -> Path:
        self.calls.append(("download_url", url, private))
        return self._write(url, target)


class FakeGit:
    def __init__(self, commit: str | None = "0123abcd") -> None:
        self.commit = commit
        self.calls: list[tuple] = []

    def latest_commit(self, source: str, private: bool = False) -> str:
        self.calls.append(("latest_commit", source))
        if self.commit is None:
            raise GitError(f"failed to get latest commit for {source}")
        return self.commit

    def clone_or_update(self, source: str, target: Path, private: bool = False) -> None:
        self.calls.append(("clone_or_update", source, Path(target)))
        Path(target).mkdir(parents=True, exist_ok=True)

    def checkout(self, target: Path, ref: str) -> None:
        self.calls.append(("checkout", Path(target), ref))

    def head(self, target: Path) -> str:
        return "feedbeef"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings.from_environment("fracture.json", work_dir=tmp_path, environ={})


@pytest.fixture
def log_messages():
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)

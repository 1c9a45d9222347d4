from pathlib import Path

import pytest

from fracture import selfupdate
from fracture.github_client import Release
from fracture.selfupdate import SelfUpdateError, self_update

from tests.conftest import FakeGitHub, asset, make_tar

SCRIPT = b"#!/bin/sh\necho 'fracture version 2.0.0'\n"


@pytest.fixture(autouse=True)
def linux_amd64(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(selfupdate, "current_platform", lambda: ("linux", "amd64"))


def _github(tmp_path: Path, *names: str) -> FakeGitHub:
    assets = tuple(asset(i, n) for i, n in enumerate(names, start=1))
    payload = make_tar(tmp_path / "payload.tar.gz", {"fracture": SCRIPT}, file_mode=0o755).read_bytes()
    return FakeGitHub(
        releases={"glitch-vpn/fracture": Release(tag_name="v2.0.0", assets=assets)},
        payloads={a.browser_download_url: payload for a in assets},
    )


def test_refuses_non_frozen_install(settings) -> None:
    with pytest.raises(SelfUpdateError) as excinfo:
        self_update(settings, github=FakeGitHub())
    assert "pip install --upgrade" in str(excinfo.value)


def test_replaces_executable(settings, tmp_path: Path) -> None:
    exe = tmp_path / "bin" / "fracture"
    exe.parent.mkdir()
    exe.write_bytes(b"old")
    gh = _github(tmp_path, "fracture_darwin_arm64.tar.gz", "fracture_linux_amd64.tar.gz")

    tag = self_update(settings, github=gh, executable=exe)

    assert tag == "v2.0.0"
    assert exe.read_bytes() == SCRIPT
    assert gh.calls[-1] == ("download_url", "https://github.com/o/r/releases/download/v1/fracture_linux_amd64.tar.gz", False)
    assert sorted(p.name for p in exe.parent.iterdir()) == ["fracture"]


def test_no_asset_for_platform(settings, tmp_path: Path) -> None:
    exe = tmp_path / "fracture"
    exe.write_bytes(b"old")
    gh = _github(tmp_path, "fracture_windows_amd64.zip")

    with pytest.raises(SelfUpdateError) as excinfo:
        self_update(settings, github=gh, executable=exe)

    assert "linux/amd64" in str(excinfo.value)
    assert exe.read_bytes() == b"old"

from pathlib import Path

import pytest
from loguru import logger

from fracture import __version__, cli
from fracture.errors import FractureError


class RecordingInstaller:
    instances: list["RecordingInstaller"] = []

    def __init__(self, settings) -> None:
        self.settings = settings
        self.calls: list[tuple] = []
        RecordingInstaller.instances.append(self)

    def install(self):
        self.calls.append(("install",))

    def update(self, name=None, version=None):
        self.calls.append(("update", name, version))


class FailingInstaller(RecordingInstaller):
    def install(self):
        raise FractureError("manifest fracture.json not found")


class ReadOnlyInstaller(RecordingInstaller):
    def install(self):
        raise PermissionError(13, "Permission denied", "fracture-lock.json")


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # main() installs its own stderr sink.
    logger.remove()


@pytest.fixture
def recording(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    RecordingInstaller.instances = []
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "DependencyInstaller", RecordingInstaller)
    return RecordingInstaller.instances


def test_version_prints_platform(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["version"]) == 0
    out = capsys.readouterr().out
    assert f"fracture version {__version__}" in out
    assert "OS/Arch:" in out


@pytest.mark.parametrize("argv", [[], ["help"]])
def test_help_exits_zero(argv: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(argv) == 0
    out = capsys.readouterr().out
    assert "Dependency types:" in out
    assert "FRACTURE_GITHUB_PAT" in out


def test_unknown_command_is_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["frobnicate"])
    assert excinfo.value.code == 2


@pytest.mark.parametrize("argv", [["install", "-c", "deps.json"], ["-c", "deps.json", "install"]])
def test_config_flag_before_or_after_command(argv: list[str], recording, tmp_path: Path) -> None:
    assert cli.main(argv) == 0

    (installer,) = recording
    assert installer.calls == [("install",)]
    assert installer.settings.manifest_path == tmp_path / "deps.json"
    assert installer.settings.lock_path == tmp_path / "deps-lock.json"


def test_default_manifest_and_infer_types(recording, tmp_path: Path) -> None:
    assert cli.main(["install", "--infer-types"]) == 0

    settings = recording[0].settings
    assert settings.manifest_path == tmp_path / "fracture.json"
    assert settings.infer_types is True


@pytest.mark.parametrize(
    "argv, expected",
    [
        (["update"], ("update", None, None)),
        (["update", "tool"], ("update", "tool", None)),
        (["update", "tool", "v1.2.0"], ("update", "tool", "v1.2.0")),
    ],
)
def test_update_arguments(argv: list[str], expected: tuple, recording) -> None:
    assert cli.main(argv) == 0
    assert recording[0].calls == [expected]


@pytest.mark.parametrize("installer", [FailingInstaller, ReadOnlyInstaller])
def test_install_errors_exit_one(installer: type, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "DependencyInstaller", installer)

    assert cli.main(["install"]) == 1


def test_token_comes_from_environment(monkeypatch: pytest.MonkeyPatch, recording) -> None:
    monkeypatch.setenv("FRACTURE_GITHUB_PAT", "  tok  \n")

    cli.main(["install"])

    assert recording[0].settings.github_token == "tok"

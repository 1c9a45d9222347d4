import pytest

from fracture.assets import (
    AmbiguousAssetMatch,
    MissingRequiredSuffix,
    NoAssetsMatchExtension,
    NoAssetsMatchName,
    NoAssetsMatchSuffix,
    best_platform_asset,
    select_asset,
)
from tests.conftest import asset

LINUX = asset(1, "tool_linux_amd64.tar.gz")
WINDOWS = asset(2, "tool_windows_amd64.zip")


def test_suffix_selects_single_matching_asset() -> None:
    chosen = select_asset([LINUX, WINDOWS], asset_suffix="linux_amd64")

    assert chosen == LINUX


def test_multiple_suffix_matches_are_ambiguous_in_any_order() -> None:
    for assets in ([LINUX, WINDOWS], [WINDOWS, LINUX]):
        with pytest.raises(AmbiguousAssetMatch) as excinfo:
            select_asset(assets, asset_suffix="amd64")
        assert set(excinfo.value.candidates) == {LINUX.name, WINDOWS.name}
        assert LINUX.name in str(excinfo.value)
        assert WINDOWS.name in str(excinfo.value)


@pytest.mark.parametrize("assets", [[LINUX], [LINUX, WINDOWS], []])
def test_missing_suffix_always_fails(assets) -> None:
    with pytest.raises(MissingRequiredSuffix) as excinfo:
        select_asset(assets)

    assert excinfo.value.candidates == tuple(a.name for a in assets)


def test_name_filter_without_matches_names_the_filter() -> None:
    with pytest.raises(NoAssetsMatchName) as excinfo:
        select_asset([LINUX, WINDOWS], asset_name="server", asset_suffix="linux", tag="v1.0.0")

    assert "'server'" in str(excinfo.value)
    assert "v1.0.0" in str(excinfo.value)


def test_extension_filter_is_anchored_at_the_end() -> None:
    checksum = asset(3, "tool_linux_amd64.tar.gz.sha256")

    chosen = select_asset([checksum, LINUX, WINDOWS], asset_extension="tar.gz", asset_suffix="amd64")

    assert chosen == LINUX


def test_extension_filter_accepts_leading_dot_and_fails_when_empty() -> None:
    assert select_asset([LINUX, WINDOWS], asset_extension=".zip", asset_suffix="amd64") == WINDOWS
    with pytest.raises(NoAssetsMatchExtension):
        select_asset([LINUX, WINDOWS], asset_extension="deb", asset_suffix="amd64")


def test_name_then_suffix_narrowing() -> None:
    server = asset(4, "server_linux_amd64.tar.gz")

    chosen = select_asset([LINUX, server], asset_name="server", asset_suffix="amd64")

    assert chosen == server


def test_suffix_without_matches_lists_candidates() -> None:
    with pytest.raises(NoAssetsMatchSuffix) as excinfo:
        select_asset([LINUX, WINDOWS], asset_suffix="darwin_arm64")

    assert excinfo.value.candidates == (LINUX.name, WINDOWS.name)


def test_platform_match_prefers_exact_os_arch() -> None:
    assets = [asset(1, "fracture_v2_darwin_arm64.tar.gz"), asset(2, "fracture_v2_linux_amd64.tar.gz")]

    assert best_platform_asset(assets, "linux", "amd64") == assets[1]


def test_platform_match_uses_arch_and_os_aliases() -> None:
    assets = [asset(1, "tool-Linux-x86_64.tar.gz"), asset(2, "tool-macOS-aarch64.zip")]

    assert best_platform_asset(assets, "linux", "amd64") == assets[0]
    assert best_platform_asset(assets, "darwin", "arm64") == assets[1]


def test_platform_match_prefers_exe_on_windows() -> None:
    assets = [asset(1, "tool_windows_amd64.zip"), asset(2, "tool_windows_amd64.exe")]

    assert best_platform_asset(assets, "windows", "amd64") == assets[1]


def test_platform_match_returns_none_without_candidates() -> None:
    assert best_platform_asset([asset(1, "tool_freebsd_riscv64.tar.gz")], "linux", "amd64") is None

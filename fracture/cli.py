"""
cli.py

Responsibility: CLI entrypoint for fracture.

Subcommands:
- `install`: install every manifest entry, write the lock file
- `update [name] [version]`: reinstall all entries, or one (optionally pinned)
- `self-update`: replace a standalone fracture binary with the latest release
- `version` / `help`

This module should orchestrate behavior but keep concerns isolated:
- Manifest / lock: `manifest.py`, `lockfile.py`
- Install pipeline: `installer.py`
- Self-update: `selfupdate.py`
"""

from __future__ import annotations

import argparse
import platform
import sys

from loguru import logger

from fracture import __version__
from fracture.config import DEFAULT_MANIFEST, TOKEN_ENV_VAR, Settings
from fracture.errors import FractureError
from fracture.installer import DependencyInstaller
from fracture.selfupdate import current_platform, self_update

_EPILOG = f"""\
Dependency types:
  binary     - download binary assets from GitHub releases
  source     - download source code archives from GitHub releases
  repository - clone Git repositories

Source type configuration:
  asset_extension - 'zip' or 'tar.gz' (default: 'tar.gz')
  extract         - extract archive contents (default: false)
  filename        - custom archive filename (only when extract=false)
  Note: asset_name and asset_suffix are not allowed for source type

Path substitutions:
  @VERSION         - replaced with release tag/version
  @TIMESTAMP       - replaced with current unix timestamp
  @ASSET_EXTENSION - replaced with file extension (only when extract=false)
  $ENV_VAR         - replaced with environment variable value

Environment variables:
  {TOKEN_ENV_VAR} - GitHub Personal Access Token for private repositories
"""


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<level>{level: <8}</level> {message}",
    )


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_environment(
        getattr(args, "config", None),
        infer_types=bool(getattr(args, "infer_types", False)),
    )


def install_cmd(args: argparse.Namespace) -> int:
    DependencyInstaller(_settings(args)).install()
    return 0


def update_cmd(args: argparse.Namespace) -> int:
    DependencyInstaller(_settings(args)).update(args.name, args.version)
    return 0


def self_update_cmd(args: argparse.Namespace) -> int:
    self_update(_settings(args))
    return 0


def version_cmd(args: argparse.Namespace) -> int:
    os_name, arch = current_platform()
    print(f"fracture version {__version__}")
    print(f"Python version: {platform.python_version()}")
    print(f"OS/Arch: {os_name}/{arch}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    # Shared flags are accepted both before and after the subcommand.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c",
        "--config",
        default=argparse.SUPPRESS,
        help=f"Path to the manifest file (default: {DEFAULT_MANIFEST})",
    )
    common.add_argument(
        "--infer-types",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Guess missing `type` fields from dependency names (legacy manifests)",
    )
    common.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Debug logging")

    p = argparse.ArgumentParser(
        prog="fracture",
        description="Fracture. Dependencies Manager",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[common],
    )
    sub = p.add_subparsers(dest="command")

    i = sub.add_parser("install", help="Install dependencies", parents=[common])
    i.set_defaults(func=install_cmd)

    u = sub.add_parser("update", help="Update all dependencies or a single one", parents=[common])
    u.add_argument("name", nargs="?", default=None, help="Dependency to update (default: all)")
    u.add_argument("version", nargs="?", default=None, help="Release tag or git ref to pin")
    u.set_defaults(func=update_cmd)

    s = sub.add_parser("self-update", help="Update fracture to the latest version", parents=[common])
    s.set_defaults(func=self_update_cmd)

    v = sub.add_parser("version", help="Show version information", parents=[common])
    v.set_defaults(func=version_cmd)

    h = sub.add_parser("help", help="Show this help")
    h.set_defaults(func=lambda _args: _print_help(p))
    return p


def _print_help(parser: argparse.ArgumentParser) -> int:
    parser.print_help()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(bool(getattr(args, "verbose", False)))

    func = getattr(args, "func", None)
    if func is None:
        return _print_help(parser)
    try:
        return int(func(args))
    except (FractureError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

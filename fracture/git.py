"""
git.py

Responsibility: the repository provider boundary (git subprocess calls).

The installer only sees `GitRepositoryProvider`; swapping in a different
implementation (e.g. an in-process git library) is an interface swap.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger

from fracture.config import TOKEN_ENV_VAR
from fracture.errors import FractureError

SHORT_HASH_LENGTH = 8


class GitError(FractureError):
    pass


def _run(cmd: list[str], *, cwd: Path | None = None, display: str | None = None) -> str:
    """
    Run a git command, raising a GitError on failure. Returns stripped stdout.

    `display` replaces the command line in error messages so tokens never leak.
    """
    try:
        completed = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found on PATH") from e
    except subprocess.CalledProcessError as e:
        raise GitError(f"Command failed: {display or ' '.join(cmd)}\n\n{(e.stderr or '').strip()}") from e
    return completed.stdout.strip()


class GitRepositoryProvider:
    def __init__(self, token: str = "") -> None:
        self._token = token.strip()

    def authenticated_url(self, source: str, private: bool) -> str:
        """
        Inject the token into https://github.com/ URLs of private repositories.
        """
        if not private or not self._token:
            return source
        if source.startswith("https://github.com/"):
            return source.replace("https://github.com/", f"https://{self._token}@github.com/", 1)
        return source

    def latest_commit(self, source: str, private: bool = False) -> str:
        """Return the short hash of the remote HEAD."""
        if private and not self._token:
            raise GitError(f"private repository {source} requires {TOKEN_ENV_VAR}")
        url = self.authenticated_url(source, private)
        output = _run(["git", "ls-remote", url, "HEAD"], display=f"git ls-remote {source} HEAD")
        for line in output.splitlines():
            parts = line.split()
            if parts:
                return parts[0][:SHORT_HASH_LENGTH]
        raise GitError(f"failed to parse git ls-remote output for {source}")

    def clone_or_update(self, source: str, target: str | Path, private: bool = False) -> None:
        """
        Clone into `target` if missing, else pull `main`, falling back to `master`.
        """
        dest = Path(target)
        url = self.authenticated_url(source, private)
        if not dest.exists():
            logger.info(f"Cloning {source} to {dest}")
            dest.parent.mkdir(parents=True, exist_ok=True)
            _run(["git", "clone", url, str(dest)], display=f"git clone {source} {dest}")
            return
        logger.info(f"Updating {dest}")
        try:
            _run(["git", "-C", str(dest), "pull", "origin", "main"])
        except GitError:
            logger.debug(f"Pull of main failed for {dest}, trying master")
            _run(["git", "-C", str(dest), "pull", "origin", "master"])

    def checkout(self, target: str | Path, ref: str) -> None:
        _run(["git", "-C", str(target), "checkout", "--quiet", ref])

    def head(self, target: str | Path) -> str:
        return _run(["git", "-C", str(target), "rev-parse", "HEAD"])[:SHORT_HASH_LENGTH]

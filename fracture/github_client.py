"""
github_client.py

Responsibility: Isolate all direct GitHub REST API and HTTP download interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints and archive URLs
- Sends HTTP requests to api.github.com / github.com
- Interprets GitHub API responses / error payloads

No retries: a failed request surfaces immediately to the caller.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests
from loguru import logger

from fracture.config import TOKEN_ENV_VAR
from fracture.errors import FractureError

_REPO_RE = re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(?:\.git)?/?$")
_CHUNK_SIZE = 64 * 1024


class GitHubError(FractureError):
    pass


class RepositoryNotFound(GitHubError):
    pass


class CredentialRequired(GitHubError):
    pass


class DownloadError(GitHubError):
    pass


class RepositoryURLError(GitHubError):
    pass


@dataclass(frozen=True)
class RemoteAsset:
    id: int
    name: str
    browser_download_url: str


@dataclass(frozen=True)
class Release:
    tag_name: str
    assets: tuple[RemoteAsset, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Release":
        assets = tuple(
            RemoteAsset(
                id=int(a["id"]),
                name=str(a["name"]),
                browser_download_url=str(a.get("browser_download_url") or ""),
            )
            for a in data.get("assets") or []
        )
        return cls(tag_name=str(data["tag_name"]), assets=assets)


def parse_repo(source: str) -> tuple[str, str]:
    """
    Return (owner, repo) for a GitHub remote URL.

    Accepts https and scp-style remotes, with or without a trailing `.git`.
    """
    m = _REPO_RE.search(source.strip())
    if m is None:
        raise RepositoryURLError(f"invalid GitHub URL format: {source}")
    return m.group(1), m.group(2)


def source_archive_url(owner: str, repo: str, tag: str, fmt: str = "tar.gz") -> str:
    """URL of the archive GitHub generates for a tag (`zip` or `tar.gz`)."""
    ext = "zip" if fmt == "zip" else "tar.gz"
    return f"https://github.com/{owner}/{repo}/archive/refs/tags/{tag}.{ext}"


class GitHubClient:
    def __init__(self, token: str = "", api_base: str = "https://api.github.com", timeout: float = 30) -> None:
        self._token = token.strip()
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    def _headers(self, *, accept: str = "application/vnd.github+json", auth: bool = True) -> dict[str, str]:
        headers = {
            "Accept": accept,
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "fracture",
        }
        if auth and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _require_token(self, what: str) -> None:
        if not self._token:
            raise CredentialRequired(f"private repository {what} requires {TOKEN_ENV_VAR}")

    def _request(self, method: str, path: str) -> Any:
        url = f"{self._api_base}{path}"
        try:
            r = requests.request(method, url, headers=self._headers(), timeout=self._timeout)
        except requests.RequestException as e:
            raise GitHubError(f"failed to reach GitHub API {method} {path}: {e}") from e
        if r.status_code == 404:
            raise RepositoryNotFound(f"GitHub API returned 404 for {path}: not found or no access")
        if r.status_code != 200:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            message = payload.get("message", payload) if isinstance(payload, dict) else payload
            raise GitHubError(f"GitHub API returned status {r.status_code} {method} {path}: {message}")
        try:
            return r.json()
        except ValueError as e:
            raise GitHubError(f"failed to parse GitHub API response for {path}") from e

    def latest_release(self, owner: str, repo: str, private: bool = False) -> Release:
        """
        Return the latest published release of `owner/repo`.
        """
        if private:
            self._require_token(f"{owner}/{repo}")
        try:
            data = self._request("GET", f"/repos/{owner}/{repo}/releases/latest")
        except RepositoryNotFound as e:
            raise RepositoryNotFound(f"repository {owner}/{repo} not found or no access") from e
        return Release.from_api(data)

    def release_by_tag(self, owner: str, repo: str, tag: str, private: bool = False) -> Release:
        if private:
            self._require_token(f"{owner}/{repo}")
        try:
            data = self._request("GET", f"/repos/{owner}/{repo}/releases/tags/{tag}")
        except RepositoryNotFound as e:
            raise RepositoryNotFound(f"release {tag} of {owner}/{repo} not found or no access") from e
        return Release.from_api(data)

    def download_asset(self, owner: str, repo: str, asset_id: int, target: str | Path) -> Path:
        """
        Download a release asset through the API by id (works for private repos).
        """
        self._require_token(f"{owner}/{repo}")
        url = f"{self._api_base}/repos/{owner}/{repo}/releases/assets/{asset_id}"
        logger.info(f"Downloading via API: {url}")
        return self._stream_to(url, target, headers=self._headers(accept="application/octet-stream"))

    def download_url(self, url: str, target: str | Path, private: bool = False) -> Path:
        """
        Download `url` directly. Credentials are only sent for private entries.
        """
        logger.info(f"Downloading {url}")
        if private:
            self._require_token(url)
        accept = "application/octet-stream" if "releases/download" in url else "*/*"
        return self._stream_to(url, target, headers=self._headers(accept=accept, auth=private))

    def _stream_to(self, url: str, target: str | Path, *, headers: dict[str, str]) -> Path:
        dest = Path(target)
        try:
            with requests.request("GET", url, headers=headers, stream=True, timeout=self._timeout) as r:
                if r.status_code != 200:
                    raise DownloadError(f"server returned status {r.status_code} for {url}")
                dest.parent.mkdir(parents=True, exist_ok=True)
                with dest.open("wb") as fh:
                    for chunk in r.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        except requests.RequestException as e:
            raise DownloadError(f"failed to download {url}: {e}") from e
        dest.chmod(0o755)
        return dest

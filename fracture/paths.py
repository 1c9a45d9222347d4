"""
paths.py

Responsibility: expand placeholder tokens in manifest paths and filenames.

Supported placeholders:
- `@VERSION`: resolved release tag or commit hash
- `@TIMESTAMP`: current unix time in seconds
- `@ASSET_EXTENSION`: asset/archive extension (empty when extracting)
- `$NAME`: environment variable `NAME` (uppercase letters, digits, underscore)

Expansion never fails. Placeholders that resolve to an empty string are
reported in a single warning so a forgotten variable is visible in the log.
"""

from __future__ import annotations

import os
import re
import time
from typing import Mapping

from loguru import logger

VERSION = "@VERSION"
TIMESTAMP = "@TIMESTAMP"
ASSET_EXTENSION = "@ASSET_EXTENSION"

_TOKEN_RE = re.compile(r"@ASSET_EXTENSION|@TIMESTAMP|@VERSION|\$([A-Z_][A-Z0-9_]*)")


def expand_path(
    template: str,
    *,
    version: str = "",
    asset_extension: str = "",
    extract: bool = False,
    environ: Mapping[str, str] | None = None,
    now: float | None = None,
) -> str:
    """
    Return `template` with every placeholder substituted.

    All tokens are matched in one pass over the original template, so text
    inserted for one placeholder is never re-scanned for another.
    """
    env = os.environ if environ is None else environ
    timestamp = str(int(time.time() if now is None else now))
    empty: list[str] = []

    def _substitute(match: re.Match[str]) -> str:
        token = match.group(0)
        if token == VERSION:
            value = version
        elif token == TIMESTAMP:
            value = timestamp
        elif token == ASSET_EXTENSION:
            value = "" if extract else asset_extension
        else:
            value = env.get(match.group(1), "")
        if not value and token not in empty and not (extract and token == ASSET_EXTENSION):
            empty.append(token)
        return value

    expanded = _TOKEN_RE.sub(_substitute, template)
    if empty:
        logger.warning(f"Placeholders resolved to empty string in {template!r}: {', '.join(empty)}")
    return expanded


def placeholders_in(template: str) -> list[str]:
    """List the placeholder tokens found in `template`, in order of first appearance."""
    found: list[str] = []
    for match in _TOKEN_RE.finditer(template):
        if match.group(0) not in found:
            found.append(match.group(0))
    return found

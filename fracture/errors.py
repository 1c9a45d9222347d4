"""
errors.py

Responsibility: the common base for every error raised by fracture.

Concrete error classes live next to the code that raises them
(`assets.py`, `archive.py`, `github_client.py`, ...). Callers that only
need to know "this entry failed" catch `FractureError`.
"""

from __future__ import annotations


class FractureError(RuntimeError):
    pass


class InstallError(FractureError):
    """A single manifest entry failed to install."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"{name}: {message}")
        self.name = name
        self.message = message


class DependencyNotFound(FractureError):
    pass

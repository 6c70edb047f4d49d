"""Error types shared across semble-recs."""

from __future__ import annotations


class SembleError(Exception):
    """Base error for semble-recs."""


class SembleAPIError(SembleError):
    """A request to the Semble API failed (network, HTTP status, or bad JSON)."""

    def __init__(self, message: str, *, url: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class ConfigError(SembleError):
    """Configuration could not be applied."""

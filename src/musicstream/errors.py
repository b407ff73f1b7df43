"""Exception hierarchy for playback, premium session, search, and config failures.

LoadError is recovered locally by adapter fallback; AuthError is converted to a
refresh attempt and then to LoadError; SearchProviderError is isolated per
source by aggregated search; ConfigError only covers malformed settings since
missing credentials degrade to empty results.
"""

from __future__ import annotations

from typing import Literal

LoadErrorReason = Literal[
    "network",
    "not_found",
    "auth",
    "premium_required",
    "no_active_device",
    "embedding_disallowed",
    "no_web_url",
    "navigation_failed",
    "backend_unavailable",
    "unsupported",
]


class MusicStreamError(Exception):
    """Base class for project errors carrying optional diagnostic context."""

    def __init__(self, message: str, *, details: dict[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class LoadError(MusicStreamError):
    """An adapter could not start a track."""

    def __init__(
        self,
        message: str,
        *,
        reason: LoadErrorReason = "network",
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.reason: LoadErrorReason = reason


class AuthError(MusicStreamError):
    """Premium session token is missing, expired, or rejected."""


class SearchProviderError(MusicStreamError):
    """One search source failed; aggregate search keeps the others."""

    def __init__(
        self,
        source: str,
        message: str,
        *,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.source = source


class ConfigError(MusicStreamError):
    """A configuration value is present but malformed."""

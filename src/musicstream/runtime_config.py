"""Runtime configuration normalization helpers.

Credentials and endpoints come from the environment. Missing credentials are
not errors: the proxy degrades to empty results and `doctor` lists what is
absent. Only malformed values raise `ConfigError`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlparse

from .errors import ConfigError

DEFAULT_PROXY_URL = "http://127.0.0.1:8787"
DEFAULT_REDIRECT_URI = "http://127.0.0.1:8787/callback"
DEFAULT_ALLOWED_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")
SEARCH_LIMIT_DEFAULT = 20
SEARCH_LIMIT_MAX = 50


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def normalize_repeat_mode(value: str) -> str:
    normalized = value.strip().lower()
    if normalized in {"none", "all", "one"}:
        return normalized
    return "none"


def parse_limit(value: object, default: int = SEARCH_LIMIT_DEFAULT) -> int:
    """Parse a request limit leniently and clamp it to 1..50."""
    try:
        limit = int(str(value))
    except (TypeError, ValueError):
        limit = default
    return max(1, min(limit, SEARCH_LIMIT_MAX))


def _env_value(env: Mapping[str, str], name: str) -> str | None:
    for key in (name, f"VITE_{name}"):
        value = env.get(key, "").strip()
        if value:
            return value
    return None


def normalize_base_url(value: str, *, name: str) -> str:
    """Return `value` without a trailing slash; reject URLs lacking a scheme."""
    candidate = value.strip().rstrip("/")
    parsed = urlparse(candidate)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigError(
            f"{name} must be an absolute http(s) URL, got {value!r}.",
            details={"name": name, "value": value},
        )
    return candidate


@dataclass(frozen=True)
class ProxySettings:
    """Server-held provider credentials used by the search/auth proxy."""

    spotify_client_id: str | None = None
    spotify_client_secret: str | None = None
    youtube_api_key: str | None = None
    jamendo_client_id: str | None = None
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ProxySettings:
        env = os.environ if env is None else env
        raw_origins = env.get("MUSICSTREAM_ALLOWED_ORIGINS", "")
        origins = tuple(
            origin.strip() for origin in raw_origins.split(",") if origin.strip()
        )
        return cls(
            spotify_client_id=_env_value(env, "SPOTIFY_CLIENT_ID"),
            spotify_client_secret=_env_value(env, "SPOTIFY_CLIENT_SECRET"),
            youtube_api_key=_env_value(env, "YOUTUBE_API_KEY"),
            jamendo_client_id=_env_value(env, "JAMENDO_CLIENT_ID"),
            allowed_origins=origins or DEFAULT_ALLOWED_ORIGINS,
        )

    @property
    def has_spotify(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    def missing_credentials(self) -> list[str]:
        """Names of unset credentials, for diagnostics only."""
        missing: list[str] = []
        if not self.spotify_client_id:
            missing.append("SPOTIFY_CLIENT_ID")
        if not self.spotify_client_secret:
            missing.append("SPOTIFY_CLIENT_SECRET")
        if not self.youtube_api_key:
            missing.append("YOUTUBE_API_KEY")
        if not self.jamendo_client_id:
            missing.append("JAMENDO_CLIENT_ID")
        return missing


@dataclass(frozen=True)
class ClientSettings:
    """Settings for the playback client talking to the proxy."""

    proxy_url: str = DEFAULT_PROXY_URL
    spotify_client_id: str | None = None
    spotify_redirect_uri: str = DEFAULT_REDIRECT_URI
    spotify_device_name: str | None = None

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        proxy_url: str | None = None,
    ) -> ClientSettings:
        """Build settings from `env`; an explicit `proxy_url` wins."""
        env = os.environ if env is None else env
        raw_proxy = proxy_url or env.get("MUSICSTREAM_PROXY_URL") or DEFAULT_PROXY_URL
        redirect = env.get("MUSICSTREAM_SPOTIFY_REDIRECT_URI", "").strip()
        device = env.get("MUSICSTREAM_SPOTIFY_DEVICE_NAME", "").strip()
        return cls(
            proxy_url=normalize_base_url(raw_proxy, name="MUSICSTREAM_PROXY_URL"),
            spotify_client_id=_env_value(env, "SPOTIFY_CLIENT_ID"),
            spotify_redirect_uri=redirect or DEFAULT_REDIRECT_URI,
            spotify_device_name=device or None,
        )

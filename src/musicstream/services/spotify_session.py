"""Spotify OAuth session: token storage, authorize URL, and serialized refresh.

Token exchange goes through the proxy so the client secret never leaves the
server. Concurrent `get_access_token()` callers share one in-flight refresh.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from collections.abc import Callable
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import httpx

from musicstream.errors import AuthError
from musicstream.runtime_config import ClientSettings
from musicstream.state_store import write_json_atomic
from musicstream.utils.async_utils import run_blocking

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_ENDPOINT = "/auth/spotify/token"
EXPIRY_MARGIN_S = 5 * 60
SCOPES = (
    "streaming",
    "user-read-email",
    "user-read-private",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "app-remote-control",
)


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str | None
    expires_at: float


def _coerce_tokens(data: Any) -> SessionTokens | None:
    if not isinstance(data, dict):
        return None
    access = data.get("access_token")
    expires_at = data.get("expires_at")
    refresh = data.get("refresh_token")
    if not isinstance(access, str) or not access:
        return None
    if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
        return None
    return SessionTokens(
        access_token=access,
        refresh_token=refresh if isinstance(refresh, str) and refresh else None,
        expires_at=float(expires_at),
    )


class SpotifySession:
    """Premium session object handed to the premium adapter and the UI."""

    def __init__(
        self,
        settings: ClientSettings,
        *,
        token_path: Path | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._token_path = token_path
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._refresh_task: asyncio.Task[str | None] | None = None
        self._tokens: SessionTokens | None = self._read_tokens()

    @property
    def tokens(self) -> SessionTokens | None:
        return self._tokens

    def is_authenticated(self) -> bool:
        tokens = self._tokens
        if tokens is None:
            return False
        return self._clock() < tokens.expires_at - EXPIRY_MARGIN_S

    def authorization_url(self, state: str | None = None) -> str:
        """Return the accounts URL the user opens to grant playback access."""
        if not self._settings.spotify_client_id:
            raise AuthError(
                "Spotify client id is not configured.",
                details={"setting": "SPOTIFY_CLIENT_ID"},
            )
        params = {
            "client_id": self._settings.spotify_client_id,
            "response_type": "code",
            "redirect_uri": self._settings.spotify_redirect_uri,
            "scope": " ".join(SCOPES),
            "state": state or secrets.token_hex(16),
            "show_dialog": "true",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> SessionTokens:
        payload = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._settings.spotify_redirect_uri,
            }
        )
        tokens = self._tokens_from_payload(payload, previous_refresh=None)
        await self._store(tokens)
        logger.info("Spotify session authorized.")
        return tokens

    async def get_access_token(self) -> str | None:
        """Return a valid access token, refreshing once if needed."""
        tokens = self._tokens
        if tokens is None:
            return None
        if self.is_authenticated():
            return tokens.access_token
        return await self.refresh()

    async def refresh(self) -> str | None:
        """Refresh the access token; concurrent callers share one request."""
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.create_task(self._refresh_once())
            self._refresh_task = task
        return await asyncio.shield(task)

    def invalidate(self) -> None:
        """Force the next `get_access_token()` to refresh."""
        tokens = self._tokens
        if tokens is not None:
            self._tokens = SessionTokens(
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_at=0.0,
            )

    async def logout(self) -> None:
        logger.info("Logging out of Spotify session.")
        await self._clear()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _refresh_once(self) -> str | None:
        tokens = self._tokens
        if tokens is None or not tokens.refresh_token:
            logger.warning("No Spotify refresh token available.")
            await self._clear()
            return None
        try:
            payload = await self._post_token(
                {"grant_type": "refresh_token", "refresh_token": tokens.refresh_token}
            )
            fresh = self._tokens_from_payload(
                payload, previous_refresh=tokens.refresh_token
            )
        except AuthError as exc:
            logger.warning("Spotify token refresh failed: %s", exc)
            await self._clear()
            return None
        await self._store(fresh)
        logger.debug("Spotify token refreshed.")
        return fresh.access_token

    async def _post_token(self, body: dict[str, str]) -> dict[str, Any]:
        client = self._http()
        try:
            response = await client.post(
                f"{self._settings.proxy_url}{TOKEN_ENDPOINT}", json=body
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc
        if response.status_code != 200:
            raise AuthError(
                f"Token request rejected with HTTP {response.status_code}.",
                details={"status": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("Token response is not JSON.") from exc
        if not isinstance(payload, dict):
            raise AuthError("Token response is not a JSON object.")
        return payload

    def _tokens_from_payload(
        self, payload: dict[str, Any], *, previous_refresh: str | None
    ) -> SessionTokens:
        access = payload.get("access_token")
        if not isinstance(access, str) or not access:
            raise AuthError("Token response has no access_token.")
        expires_in = payload.get("expires_in", 3600)
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            expires_in = 3600
        refresh = payload.get("refresh_token")
        if not isinstance(refresh, str) or not refresh:
            refresh = previous_refresh
        return SessionTokens(
            access_token=access,
            refresh_token=refresh,
            expires_at=self._clock() + float(expires_in),
        )

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    def _read_tokens(self) -> SessionTokens | None:
        if self._token_path is None:
            return None
        try:
            raw = self._token_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read session file %s: %s", self._token_path, exc)
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Session file %s is invalid JSON; ignoring.", self._token_path)
            return None
        return _coerce_tokens(data)

    async def _store(self, tokens: SessionTokens) -> None:
        self._tokens = tokens
        if self._token_path is not None:
            await run_blocking(write_json_atomic, self._token_path, asdict(tokens))

    async def _clear(self) -> None:
        self._tokens = None
        if self._token_path is not None:
            with suppress(FileNotFoundError):
                await run_blocking(self._token_path.unlink)

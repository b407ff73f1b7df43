"""Tests for Spotify session token handling."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from musicstream.errors import AuthError
from musicstream.runtime_config import ClientSettings
from musicstream.services.spotify_session import EXPIRY_MARGIN_S, SpotifySession

SETTINGS = ClientSettings(
    proxy_url="http://proxy.test",
    spotify_client_id="cid",
    spotify_redirect_uri="http://127.0.0.1:8787/callback",
)


class _Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _write_tokens(path: Path, **data: object) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def _session(
    tmp_path: Path, handler, clock: _Clock | None = None
) -> SpotifySession:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SpotifySession(
        SETTINGS,
        token_path=tmp_path / "spotify_session.json",
        client=client,
        clock=clock or _Clock(),
    )


def _refuse(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request: {request.url}")


def test_authorization_url_carries_scopes_and_redirect(tmp_path) -> None:
    session = _session(tmp_path, _refuse)
    url = urlparse(session.authorization_url(state="xyz"))
    query = parse_qs(url.query)

    assert url.netloc == "accounts.spotify.com"
    assert query["client_id"] == ["cid"]
    assert query["response_type"] == ["code"]
    assert query["state"] == ["xyz"]
    assert query["redirect_uri"] == ["http://127.0.0.1:8787/callback"]
    assert "streaming" in query["scope"][0].split()


def test_authorization_url_requires_client_id(tmp_path) -> None:
    session = SpotifySession(ClientSettings(), token_path=tmp_path / "s.json")
    with pytest.raises(AuthError):
        session.authorization_url()


def test_exchange_code_stores_tokens(tmp_path) -> None:
    clock = _Clock(500.0)
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"access_token": "a1", "refresh_token": "r1", "expires_in": 3600},
        )

    session = _session(tmp_path, handler, clock)
    tokens = asyncio.run(session.exchange_code("the-code"))

    assert tokens.expires_at == 4100.0
    assert session.is_authenticated()
    assert str(seen[0].url) == "http://proxy.test/auth/spotify/token"
    assert json.loads(seen[0].content) == {
        "grant_type": "authorization_code",
        "code": "the-code",
        "redirect_uri": "http://127.0.0.1:8787/callback",
    }
    stored = json.loads((tmp_path / "spotify_session.json").read_text("utf-8"))
    assert stored == {"access_token": "a1", "refresh_token": "r1", "expires_at": 4100.0}


def test_stored_tokens_are_loaded_on_start(tmp_path) -> None:
    _write_tokens(
        tmp_path / "spotify_session.json",
        access_token="a1",
        refresh_token="r1",
        expires_at=10_000.0,
    )
    session = _session(tmp_path, _refuse)

    assert session.is_authenticated()
    assert asyncio.run(session.get_access_token()) == "a1"


def test_corrupt_token_file_is_ignored(tmp_path) -> None:
    (tmp_path / "spotify_session.json").write_text("{oops", encoding="utf-8")
    session = _session(tmp_path, _refuse)

    assert session.tokens is None
    assert asyncio.run(session.get_access_token()) is None


def test_token_inside_expiry_margin_triggers_refresh(tmp_path) -> None:
    clock = _Clock(1_000.0)
    _write_tokens(
        tmp_path / "spotify_session.json",
        access_token="old",
        refresh_token="r1",
        expires_at=1_000.0 + EXPIRY_MARGIN_S - 1,
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {
            "grant_type": "refresh_token",
            "refresh_token": "r1",
        }
        return httpx.Response(200, json={"access_token": "new", "expires_in": 3600})

    session = _session(tmp_path, handler, clock)

    assert not session.is_authenticated()
    assert asyncio.run(session.get_access_token()) == "new"
    assert session.tokens is not None
    assert session.tokens.refresh_token == "r1"


def test_concurrent_callers_share_one_refresh(tmp_path) -> None:
    _write_tokens(
        tmp_path / "spotify_session.json",
        access_token="old",
        refresh_token="r1",
        expires_at=0.0,
    )
    posts: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        posts.append(request)
        return httpx.Response(200, json={"access_token": "new", "expires_in": 3600})

    session = _session(tmp_path, handler)

    async def run():
        return await asyncio.gather(*(session.get_access_token() for _ in range(5)))

    tokens = asyncio.run(run())

    assert tokens == ["new"] * 5
    assert len(posts) == 1


def test_failed_refresh_clears_session(tmp_path) -> None:
    path = tmp_path / "spotify_session.json"
    _write_tokens(path, access_token="old", refresh_token="r1", expires_at=0.0)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant"})

    session = _session(tmp_path, handler)

    assert asyncio.run(session.get_access_token()) is None
    assert session.tokens is None
    assert not path.exists()


def test_expired_token_without_refresh_token_clears_session(tmp_path) -> None:
    _write_tokens(
        tmp_path / "spotify_session.json", access_token="old", expires_at=0.0
    )
    session = _session(tmp_path, _refuse)

    assert asyncio.run(session.get_access_token()) is None
    assert session.tokens is None


def test_invalidate_forces_refresh(tmp_path) -> None:
    _write_tokens(
        tmp_path / "spotify_session.json",
        access_token="a1",
        refresh_token="r1",
        expires_at=10_000.0,
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "a2", "expires_in": 60})

    session = _session(tmp_path, handler)
    session.invalidate()

    assert not session.is_authenticated()
    assert asyncio.run(session.get_access_token()) == "a2"


def test_logout_removes_token_file(tmp_path) -> None:
    path = tmp_path / "spotify_session.json"
    _write_tokens(path, access_token="a1", refresh_token="r1", expires_at=10_000.0)
    session = _session(tmp_path, _refuse)

    asyncio.run(session.logout())

    assert session.tokens is None
    assert not path.exists()

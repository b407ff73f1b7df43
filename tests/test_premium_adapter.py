"""Tests for the Spotify Connect remote-control adapter."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from helpers import make_track

from musicstream.errors import LoadError
from musicstream.services.playback_adapter import (
    MediaChanged,
    PositionUpdated,
    StateChanged,
)
from musicstream.services.premium_adapter import (
    PremiumDeviceAdapter,
    select_device,
    spotify_track_id,
)

DEVICES = {
    "devices": [
        {"id": "phone", "name": "Phone", "is_active": False},
        {"id": "desk", "name": "Desktop", "is_active": True},
    ]
}


class _Session:
    def __init__(self, token: str | None = "t1") -> None:
        self.token = token
        self.invalidations = 0

    async def get_access_token(self) -> str | None:
        return self.token

    def invalidate(self) -> None:
        self.invalidations += 1
        self.token = f"t{self.invalidations + 1}"


class _Spotify:
    """Scripted Web API: `routes` maps (method, path) to a response factory."""

    def __init__(self, routes: dict[tuple[str, str], object] | None = None) -> None:
        self.routes = {
            ("GET", "/v1/tracks/abc"): {"id": "abc", "duration_ms": 200_000},
            ("GET", "/v1/me/player/devices"): DEVICES,
            ("PUT", "/v1/me/player"): 204,
            ("PUT", "/v1/me/player/play"): 204,
            ("PUT", "/v1/me/player/pause"): 204,
            ("PUT", "/v1/me/player/seek"): 204,
            ("PUT", "/v1/me/player/volume"): 204,
        }
        self.routes.update(routes or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if callable(route):
            route = route(request)
        if route is None:
            return httpx.Response(404)
        if isinstance(route, int):
            return httpx.Response(route)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def paths(self, method: str | None = None) -> list[str]:
        return [
            r.url.path for r in self.requests if method is None or r.method == method
        ]


class _Recorder:
    def __init__(self) -> None:
        self.events: list[object] = []

    async def __call__(self, event) -> None:
        self.events.append(event)

    def statuses(self) -> list[str]:
        return [e.status for e in self.events if isinstance(e, StateChanged)]


def _adapter(api: _Spotify, session: _Session | None = None, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    adapter = PremiumDeviceAdapter(
        session or _Session(),  # type: ignore[arg-type]
        client=client,
        api_base="https://api.spotify.com/v1",
        poll_interval_s=3600,
        **kwargs,
    )
    recorder = _Recorder()
    adapter.set_event_handler(recorder)
    return adapter, recorder


def _spotify_track(native: str = "abc"):
    return make_track(
        native, source="spotify", playable_url=f"https://open.spotify.com/track/{native}"
    )


def test_select_device_prefers_name_then_active() -> None:
    devices = DEVICES["devices"]
    assert select_device(devices, "phone")["id"] == "phone"
    assert select_device(devices, "Missing")["id"] == "desk"
    assert select_device([{"id": "x", "is_restricted": True}]) is None
    assert select_device([{"name": "no id"}, {"id": "y"}])["id"] == "y"


def test_load_transfers_to_device_and_emits_ready() -> None:
    api = _Spotify()
    adapter, recorder = _adapter(api)

    async def run():
        await adapter.load(_spotify_track())
        await adapter.destroy()

    asyncio.run(run())

    assert adapter.device_id == "desk"
    transfer = next(r for r in api.requests if r.url.path == "/v1/me/player")
    assert json.loads(transfer.content) == {"device_ids": ["desk"], "play": False}
    assert MediaChanged(200.0) in recorder.events
    assert recorder.statuses() == ["loading", "ready"]
    assert api.requests[0].headers["authorization"] == "Bearer t1"


def test_load_applies_stored_volume_after_transfer() -> None:
    api = _Spotify()
    adapter, _recorder = _adapter(api)

    async def run():
        await adapter.set_volume(0.3)
        await adapter.load(_spotify_track())
        await adapter.destroy()

    asyncio.run(run())

    puts = api.paths("PUT")
    assert puts.index("/v1/me/player") < puts.index("/v1/me/player/volume")
    volume = [r for r in api.requests if r.url.path == "/v1/me/player/volume"]
    assert len(volume) == 1
    assert volume[0].url.params["volume_percent"] == "30"
    assert volume[0].url.params["device_id"] == "desk"


def test_device_refusing_volume_still_loads() -> None:
    api = _Spotify({("PUT", "/v1/me/player/volume"): 403})
    adapter, recorder = _adapter(api)

    async def run():
        await adapter.load(_spotify_track())
        ready = adapter.is_ready()
        await adapter.destroy()
        return ready

    assert asyncio.run(run()) is True
    assert recorder.statuses() == ["loading", "ready"]


def test_spotify_track_id_prefers_linked_catalog_id() -> None:
    linked = make_track(
        "abc", source="spotify", playable_url="https://open.spotify.com/track/xyz"
    )
    assert spotify_track_id(linked) == "xyz"
    assert spotify_track_id(make_track("abc", source="spotify")) == "abc"
    assert spotify_track_id(make_track("abc", source="jamendo")) is None


def test_play_starts_track_uri_then_resumes() -> None:
    api = _Spotify()
    adapter, recorder = _adapter(api)

    async def run():
        await adapter.load(_spotify_track())
        await adapter.play()
        await adapter.pause()
        await adapter.play()
        await adapter.destroy()

    asyncio.run(run())

    plays = [r for r in api.requests if r.url.path == "/v1/me/player/play"]
    assert json.loads(plays[0].content) == {
        "uris": ["spotify:track:abc"],
        "position_ms": 0,
    }
    assert plays[1].content == b""
    assert plays[0].url.params["device_id"] == "desk"
    assert recorder.statuses()[-3:] == ["playing", "paused", "playing"]


def test_seek_clamps_and_sends_milliseconds() -> None:
    api = _Spotify()
    adapter, recorder = _adapter(api)

    async def run():
        await adapter.load(_spotify_track())
        await adapter.play()
        await adapter.seek(500)
        await adapter.destroy()

    asyncio.run(run())

    seek = [r for r in api.requests if r.url.path == "/v1/me/player/seek"][0]
    assert seek.url.params["position_ms"] == "200000"
    assert PositionUpdated(200.0, 200.0) in recorder.events


def test_unauthorized_request_refreshes_token_once() -> None:
    def tracks(request: httpx.Request) -> httpx.Response:
        if request.headers["authorization"] == "Bearer t1":
            return httpx.Response(401)
        return httpx.Response(200, json={"id": "abc", "duration_ms": 1000})

    api = _Spotify({("GET", "/v1/tracks/abc"): tracks})
    session = _Session()
    adapter, _recorder = _adapter(api, session)

    async def run():
        await adapter.load(_spotify_track())
        await adapter.destroy()

    asyncio.run(run())

    assert session.invalidations == 1
    assert api.paths("GET").count("/v1/tracks/abc") == 2


def test_repeated_unauthorized_becomes_auth_load_error() -> None:
    api = _Spotify({("GET", "/v1/tracks/abc"): 401})
    adapter, _recorder = _adapter(api)

    with pytest.raises(LoadError) as excinfo:
        asyncio.run(adapter.load(_spotify_track()))

    assert excinfo.value.reason == "auth"
    assert "reconnect" in str(excinfo.value)


def test_missing_token_becomes_auth_load_error() -> None:
    adapter, _recorder = _adapter(_Spotify(), _Session(token=None))

    with pytest.raises(LoadError) as excinfo:
        asyncio.run(adapter.load(_spotify_track()))

    assert excinfo.value.reason == "auth"


@pytest.mark.parametrize(
    ("routes", "reason"),
    [
        ({("GET", "/v1/tracks/abc"): 404}, "not_found"),
        ({("PUT", "/v1/me/player"): 403}, "premium_required"),
        ({("GET", "/v1/me/player/devices"): {"devices": []}}, "no_active_device"),
        ({("PUT", "/v1/me/player"): 404}, "no_active_device"),
        ({("GET", "/v1/tracks/abc"): 500}, "network"),
    ],
)
def test_load_failures_map_to_reasons(routes, reason) -> None:
    adapter, _recorder = _adapter(_Spotify(routes))

    with pytest.raises(LoadError) as excinfo:
        asyncio.run(adapter.load(_spotify_track()))

    assert excinfo.value.reason == reason


def test_non_spotify_track_is_unsupported() -> None:
    adapter, _recorder = _adapter(_Spotify())

    with pytest.raises(LoadError) as excinfo:
        asyncio.run(adapter.load(make_track("x", source="jamendo")))

    assert excinfo.value.reason == "unsupported"


def test_poll_detects_end_of_track() -> None:
    player = {"item": {"id": "abc", "duration_ms": 200_000}, "progress_ms": 199_500}
    api = _Spotify({("GET", "/v1/me/player"): lambda request: player})
    adapter, recorder = _adapter(api)

    async def run():
        await adapter.load(_spotify_track())
        await adapter.play()
        player["is_playing"] = True
        keep_going = await adapter._poll_once()
        player["is_playing"] = False
        player["progress_ms"] = 0
        await adapter._poll_once()
        await adapter.destroy()
        return keep_going

    assert asyncio.run(run()) is True
    assert recorder.statuses()[-1] == "ended"


def test_poll_reports_remote_pause_before_end() -> None:
    player = {
        "item": {"id": "abc", "duration_ms": 200_000},
        "progress_ms": 50_000,
        "is_playing": False,
    }
    api = _Spotify({("GET", "/v1/me/player"): lambda request: player})
    adapter, recorder = _adapter(api)

    async def run():
        await adapter.load(_spotify_track())
        await adapter.play()
        await adapter._poll_once()
        await adapter.destroy()

    asyncio.run(run())

    assert recorder.statuses()[-1] == "paused"
    assert PositionUpdated(50.0, 200.0) in recorder.events


def test_destroy_pauses_remote_and_silences_events() -> None:
    api = _Spotify()
    adapter, recorder = _adapter(api)

    async def run():
        await adapter.load(_spotify_track())
        await adapter.play()
        await adapter.destroy()
        await adapter.destroy()
        count = len(recorder.events)
        await adapter.play()
        return count

    count = asyncio.run(run())

    assert api.paths("PUT").count("/v1/me/player/pause") == 1
    assert len(recorder.events) == count
    assert not adapter.is_ready()

"""Tests for simulated and external-link playback adapters."""

from __future__ import annotations

import asyncio

import pytest
from helpers import make_track

from musicstream.errors import LoadError
from musicstream.services.external_link_adapter import (
    ExternalLinkAdapter,
    resolve_external_url,
)
from musicstream.services.playback_adapter import (
    MediaChanged,
    PositionUpdated,
    StateChanged,
)
from musicstream.services.simulation_adapter import SimulationAdapter


def _run(coro):
    return asyncio.run(coro)


class _Recorder:
    def __init__(self) -> None:
        self.events: list[object] = []

    async def __call__(self, event: object) -> None:
        self.events.append(event)

    def statuses(self) -> list[str]:
        return [e.status for e in self.events if isinstance(e, StateChanged)]


def test_simulation_runs_to_end_and_stops_ticking() -> None:
    async def run() -> None:
        adapter = SimulationAdapter(tick_interval_s=0.01)
        recorder = _Recorder()
        adapter.set_event_handler(recorder)
        await adapter.load(make_track("a", duration=0))
        assert await adapter.get_duration() == 180.0
        await adapter.seek(179.98)
        await adapter.play()
        await asyncio.sleep(0.1)
        assert recorder.statuses()[-1] == "ended"
        ended_count = len(recorder.events)
        await asyncio.sleep(0.05)
        assert len(recorder.events) == ended_count
        await adapter.destroy()

    _run(run())


def test_simulation_load_reports_media_and_ready() -> None:
    async def run() -> None:
        adapter = SimulationAdapter(tick_interval_s=10)
        recorder = _Recorder()
        adapter.set_event_handler(recorder)
        await adapter.load(make_track("a", duration=42))
        assert recorder.events[:4] == [
            StateChanged("loading"),
            MediaChanged(42.0),
            PositionUpdated(0.0, 42.0),
            StateChanged("ready"),
        ]
        assert adapter.is_ready()
        await adapter.destroy()

    _run(run())


def test_simulation_commands_are_idempotent_and_noop_unloaded() -> None:
    async def run() -> None:
        adapter = SimulationAdapter(tick_interval_s=10)
        recorder = _Recorder()
        adapter.set_event_handler(recorder)
        await adapter.play()
        await adapter.pause()
        await adapter.seek(5)
        assert recorder.events == []
        await adapter.load(make_track("a", duration=60))
        recorder.events.clear()
        await adapter.play()
        await adapter.play()
        assert recorder.statuses() == ["playing"]
        await adapter.seek(500)
        assert await adapter.get_position() == 60.0
        await adapter.set_volume(3.0)
        await adapter.destroy()

    _run(run())


def test_simulation_destroy_silences_events() -> None:
    async def run() -> None:
        adapter = SimulationAdapter(tick_interval_s=0.01)
        recorder = _Recorder()
        adapter.set_event_handler(recorder)
        await adapter.load(make_track("a", duration=60))
        await adapter.play()
        await adapter.destroy()
        count = len(recorder.events)
        await asyncio.sleep(0.05)
        assert len(recorder.events) == count
        await adapter.destroy()
        assert adapter.is_ready() is False

    _run(run())


def test_simulation_rejects_bad_tick() -> None:
    with pytest.raises(ValueError):
        SimulationAdapter(tick_interval_s=0)


def test_external_link_opens_url_then_simulates() -> None:
    opened: list[str] = []

    async def opener(url: str) -> bool:
        opened.append(url)
        return True

    async def run() -> None:
        adapter = ExternalLinkAdapter(opener=opener, tick_interval_s=10)
        recorder = _Recorder()
        adapter.set_event_handler(recorder)
        track = make_track(
            "x", source="youtube", playable_url="https://www.youtube.com/watch?v=x"
        )
        await adapter.load(track)
        assert opened == ["https://www.youtube.com/watch?v=x"]
        assert adapter.opened_url == opened[0]
        assert recorder.statuses()[-1] == "ready"
        await adapter.destroy()

    _run(run())


def test_external_link_without_url_fails() -> None:
    async def opener(url: str) -> bool:
        raise AssertionError("opener should not be called")

    async def run() -> None:
        adapter = ExternalLinkAdapter(opener=opener)
        with pytest.raises(LoadError) as excinfo:
            await adapter.load(make_track("x", source="demo"))
        assert excinfo.value.reason == "no_web_url"

    _run(run())


@pytest.mark.parametrize("outcome", [False, RuntimeError("no display")])
def test_external_link_navigation_failures(outcome) -> None:
    async def opener(url: str) -> bool:
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def run() -> None:
        adapter = ExternalLinkAdapter(opener=opener)
        track = make_track("x", source="spotify", playable_url="https://open.spotify.com/track/x")
        with pytest.raises(LoadError) as excinfo:
            await adapter.load(track)
        assert excinfo.value.reason == "navigation_failed"
        assert adapter.is_ready() is False

    _run(run())


def test_resolve_external_url_builds_youtube_watch_url() -> None:
    track = make_track("dQw4w9WgXcQ", source="youtube")
    assert resolve_external_url(track) == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert resolve_external_url(make_track("x", source="demo")) is None

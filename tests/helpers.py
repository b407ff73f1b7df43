"""Shared track builders and adapter fakes for tests."""

from __future__ import annotations

from musicstream.errors import LoadError
from musicstream.models import Track
from musicstream.services.playback_adapter import (
    AdapterEvent,
    AdapterKind,
    EventHandler,
    PositionUpdated,
    StateChanged,
)


def make_track(
    native_id: str,
    *,
    source: str = "demo",
    duration: int = 180,
    playable_url: str | None = None,
    preview_url: str | None = None,
) -> Track:
    return Track(
        id=f"{source}:{native_id}",
        title=f"Title {native_id}",
        artist="Artist",
        album="Album",
        duration_seconds=duration,
        source=source,  # type: ignore[arg-type]
        playable_url=playable_url,
        preview_url=preview_url,
    )


class RecordingAdapter:
    """Scriptable adapter that records commands and can be told to fail."""

    def __init__(self, kind: AdapterKind, *, fail: LoadError | None = None) -> None:
        self.kind = kind
        self.fail = fail
        self.handler: EventHandler | None = None
        self.last_handler: EventHandler | None = None
        self.calls: list[str] = []
        self.loaded: Track | None = None
        self.destroyed = False
        self.volume: float | None = None

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self.handler = handler
        if handler is not None:
            self.last_handler = handler

    async def emit(self, event: AdapterEvent) -> None:
        """Deliver an event the way a still-referenced handler would."""
        if self.handler is not None:
            await self.handler(event)

    async def load(self, track: Track) -> None:
        self.calls.append("load")
        if self.fail is not None:
            raise self.fail
        self.loaded = track
        await self.emit(StateChanged("ready"))

    async def play(self) -> None:
        self.calls.append("play")
        await self.emit(StateChanged("playing"))

    async def pause(self) -> None:
        self.calls.append("pause")
        await self.emit(StateChanged("paused"))

    async def stop(self) -> None:
        self.calls.append("stop")
        await self.emit(StateChanged("stopped"))

    async def seek(self, seconds: float) -> None:
        self.calls.append(f"seek:{seconds:g}")
        duration = float(self.loaded.duration_seconds) if self.loaded else 0.0
        await self.emit(PositionUpdated(seconds, duration))

    async def set_volume(self, volume: float) -> None:
        self.volume = volume

    async def get_position(self) -> float:
        return 0.0

    async def get_duration(self) -> float:
        return float(self.loaded.duration_seconds) if self.loaded else 0.0

    def is_ready(self) -> bool:
        return self.loaded is not None and not self.destroyed

    async def destroy(self) -> None:
        self.calls.append("destroy")
        self.destroyed = True
        self.handler = None

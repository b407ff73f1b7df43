"""Playback adapter contracts and event payloads.

`PlaybackOrchestrator` depends on this protocol to stay backend-agnostic.
Concrete adapters (simulation, external link, VLC direct stream, premium
device) translate backend-specific behavior into these shared commands and
events. Positions and durations are float seconds.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from musicstream.models import Track

AdapterKind = Literal["direct", "external", "premium", "simulation"]
AdapterStatus = Literal[
    "idle", "loading", "ready", "playing", "paused", "stopped", "ended", "error"
]


@dataclass(frozen=True)
class AdapterEvent:
    """Marker base type for adapter-originated events."""

    pass


@dataclass(frozen=True)
class PositionUpdated(AdapterEvent):
    """Periodic transport position update."""

    position: float
    duration: float


@dataclass(frozen=True)
class StateChanged(AdapterEvent):
    """Adapter playback state transition."""

    status: AdapterStatus


@dataclass(frozen=True)
class MediaChanged(AdapterEvent):
    """Real media duration became known after load."""

    duration: float


@dataclass(frozen=True)
class AdapterFailed(AdapterEvent):
    """Adapter-reported runtime error after a successful load."""

    message: str


EventHandler = Callable[[AdapterEvent], Awaitable[None]]


class PlaybackAdapter(Protocol):
    """Playback driver protocol consumed by `PlaybackOrchestrator`."""

    kind: AdapterKind

    def set_event_handler(self, handler: EventHandler | None) -> None: ...

    async def load(self, track: Track) -> None:
        """Prepare `track`; raises `LoadError` and never hangs."""
        ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def stop(self) -> None: ...

    async def seek(self, seconds: float) -> None: ...

    async def set_volume(self, volume: float) -> None: ...

    async def get_position(self) -> float: ...

    async def get_duration(self) -> float: ...

    def is_ready(self) -> bool: ...

    async def destroy(self) -> None:
        """Release timers, threads, and listeners; idempotent."""
        ...


def clamp(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(value, max_value))

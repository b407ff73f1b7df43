"""Timer-driven playback adapter for tracks without obtainable audio."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass

from musicstream.models import Track

from .playback_adapter import (
    AdapterEvent,
    AdapterKind,
    AdapterStatus,
    EventHandler,
    MediaChanged,
    PositionUpdated,
    StateChanged,
    clamp,
)

logger = logging.getLogger(__name__)

DEFAULT_DURATION_S = 180.0


@dataclass
class _PlaybackState:
    status: AdapterStatus = "idle"
    position: float = 0.0
    duration: float = 0.0
    volume: float = 1.0


class SimulationAdapter:
    """In-memory adapter that advances position on a local timer.

    No audio is produced. The event shape matches the real adapters so the
    orchestrator never special-cases simulated playback.
    """

    kind: AdapterKind = "simulation"

    def __init__(
        self,
        *,
        tick_interval_s: float = 1.0,
        default_duration_s: float = DEFAULT_DURATION_S,
    ) -> None:
        if tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be > 0")
        self._tick_interval = tick_interval_s
        self._default_duration = default_duration_s
        self._state = _PlaybackState()
        self._handler: EventHandler | None = None
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._loaded = False
        self._destroyed = False

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self._handler = handler

    async def load(self, track: Track) -> None:
        async with self._lock:
            self._state.status = "loading"
        await self._emit(StateChanged("loading"))
        duration = float(track.duration_seconds) or self._default_duration
        async with self._lock:
            self._state.duration = duration
            self._state.position = 0.0
            self._state.status = "ready"
            self._loaded = True
        await self._emit(MediaChanged(duration))
        await self._emit(PositionUpdated(0.0, duration))
        await self._emit(StateChanged("ready"))
        if self._task is None and not self._destroyed:
            self._task = asyncio.create_task(self._ticker_loop())

    async def play(self) -> None:
        async with self._lock:
            if not self._loaded or self._state.status == "playing":
                return
            if (
                self._state.status == "ended"
                and self._state.position >= self._state.duration
            ):
                self._state.position = 0.0
            self._state.status = "playing"
        await self._emit(StateChanged("playing"))

    async def pause(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.status = "paused"
        await self._emit(StateChanged("paused"))

    async def stop(self) -> None:
        async with self._lock:
            if not self._loaded or self._state.status == "stopped":
                return
            self._state.status = "stopped"
            self._state.position = 0.0
            duration = self._state.duration
        await self._emit(PositionUpdated(0.0, duration))
        await self._emit(StateChanged("stopped"))

    async def seek(self, seconds: float) -> None:
        async with self._lock:
            if not self._loaded:
                return
            pos = clamp(seconds, 0.0, self._state.duration)
            self._state.position = pos
            duration = self._state.duration
        await self._emit(PositionUpdated(pos, duration))

    async def set_volume(self, volume: float) -> None:
        async with self._lock:
            self._state.volume = clamp(volume, 0.0, 1.0)

    async def get_position(self) -> float:
        async with self._lock:
            return self._state.position

    async def get_duration(self) -> float:
        async with self._lock:
            return self._state.duration

    async def get_status(self) -> AdapterStatus:
        async with self._lock:
            return self._state.status

    def is_ready(self) -> bool:
        return self._loaded and not self._destroyed

    async def destroy(self) -> None:
        self._destroyed = True
        self._handler = None
        self._loaded = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            if task is not asyncio.current_task():
                with suppress(asyncio.CancelledError):
                    await task
        async with self._lock:
            self._state.status = "idle"
            self._state.position = 0.0

    async def _ticker_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._tick_interval)
                await self._tick()
        except asyncio.CancelledError:
            pass

    async def _tick(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            duration = self._state.duration
            if duration <= 0:
                return
            next_pos = self._state.position + self._tick_interval
            if next_pos >= duration:
                next_pos = duration
                self._state.status = "ended"
            self._state.position = next_pos
            status = self._state.status
        await self._emit(PositionUpdated(next_pos, duration))
        if status == "ended":
            logger.debug("Simulated playback reached end (%.1fs).", duration)
            await self._emit(StateChanged("ended"))

    async def _emit(self, event: AdapterEvent) -> None:
        handler = self._handler
        if handler is None or self._destroyed:
            return
        await handler(event)

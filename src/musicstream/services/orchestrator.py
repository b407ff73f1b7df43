"""Playback orchestration between UI intent and source adapters.

`PlaybackOrchestrator` is the transport/queue authority. It owns the single
active adapter, applies the transport reducer, normalizes adapter events into
state updates, and falls back to the next-best adapter when a load fails.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Literal, Protocol

from musicstream.errors import AuthError, LoadError, MusicStreamError
from musicstream.events import PlayerStateChanged, TrackChanged
from musicstream.models import SearchResult, Track

from .playback_adapter import (
    AdapterEvent,
    AdapterFailed,
    AdapterKind,
    MediaChanged,
    PlaybackAdapter,
    PositionUpdated,
    StateChanged,
)
from .strategy import next_best, select_adapter
from .transport import (
    AddToQueue,
    ClearQueue,
    Command,
    DurationCorrected,
    LoadFinished,
    LoadStarted,
    NextTrack,
    PlaybackFailed,
    PlaybackStatusChanged,
    PlayTrack,
    PreviousTrack,
    RemoveFromQueue,
    SetPosition,
    SetQueue,
    SetVolume,
    Stop,
    ToggleRepeat,
    ToggleShuffle,
    TransportState,
    reduce,
)

if TYPE_CHECKING:
    from .search import AggregatedSearch

logger = logging.getLogger(__name__)

STATUS = Literal[
    "idle", "loading", "ready", "playing", "paused", "stopped", "ended", "error"
]
AdapterFactory = Callable[[AdapterKind], PlaybackAdapter]
Subscriber = Callable[[object], Awaitable[None]]

_LOAD_HINTS: dict[str, tuple[str, str]] = {
    "network": (
        "the stream could not be reached or decoded.",
        "Check your connection and retry.",
    ),
    "not_found": (
        "the track is no longer available from its source.",
        "Search for another version of the track.",
    ),
    "auth": (
        "the Spotify session expired and could not be refreshed.",
        "Reconnect your Spotify account.",
    ),
    "premium_required": (
        "remote playback needs a Spotify Premium account.",
        "Use a Premium account or play the preview instead.",
    ),
    "no_active_device": (
        "no Spotify device is open.",
        "Open Spotify on a device and retry.",
    ),
    "embedding_disallowed": (
        "the source does not allow embedded playback.",
        "Open the track on its own site.",
    ),
    "no_web_url": ("the track has no page to open.", "Pick another result."),
    "navigation_failed": (
        "no browser accepted the track page.",
        "Check the default browser configuration.",
    ),
    "backend_unavailable": (
        "VLC/libVLC is not installed or failed to start.",
        "Install VLC and restart the app.",
    ),
    "unsupported": ("the track has no playable media.", "Pick another result."),
}


class PremiumSessionLike(Protocol):
    def is_authenticated(self) -> bool: ...


def _format_user_error(
    *, what_failed: str, likely_cause: str, next_step: str, detail: str | None = None
) -> str:
    message = f"{what_failed}\nLikely cause: {likely_cause}\nNext step: {next_step}"
    if detail:
        message = f"{message}\nDetails: {detail}"
    return message


def _load_error_message(track: Track, exc: MusicStreamError) -> str:
    if isinstance(exc, LoadError):
        reason: str = exc.reason
    elif isinstance(exc, AuthError):
        reason = "auth"
    else:
        reason = "network"
    likely_cause, next_step = _LOAD_HINTS.get(reason, _LOAD_HINTS["network"])
    return _format_user_error(
        what_failed=f"Could not play '{track.title}'.",
        likely_cause=likely_cause,
        next_step=next_step,
        detail=exc.message.splitlines()[0] if exc.message else None,
    )


class PlaybackOrchestrator:
    """Owns transport state and the active adapter; emits events to subscribers."""

    def __init__(
        self,
        *,
        adapter_factory: AdapterFactory,
        session: PremiumSessionLike | None = None,
        search: AggregatedSearch | None = None,
        emit_event: Subscriber | None = None,
        shuffle_random: random.Random | None = None,
        initial_state: TransportState | None = None,
    ) -> None:
        self._adapter_factory = adapter_factory
        self._session = session
        self._search = search
        self._emit_event = emit_event
        self._subscribers: list[Subscriber] = []
        self._shuffle_random = shuffle_random or random.Random()
        self._state = initial_state or TransportState()
        self._status: STATUS = "idle"
        self._adapter: PlaybackAdapter | None = None
        self._adapter_kind: AdapterKind | None = None
        self._generation = 0
        self._end_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def status(self) -> STATUS:
        return self._status

    @property
    def active_kind(self) -> AdapterKind | None:
        return self._adapter_kind

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register `callback` for every event; returns an unsubscribe callable."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def start(self) -> None:
        """Publish the initial (possibly restored) state."""
        await self._emit_state()

    async def shutdown(self) -> None:
        """Tear down the active adapter and pending track-end work."""
        self._generation += 1
        task, self._end_task = self._end_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        await self._teardown_adapter()
        self._status = "idle"

    async def play_track(self, track: Track, *, enqueue: bool = False) -> None:
        """Make `track` current and start it on the best available adapter."""
        self._dispatch(PlayTrack(track, enqueue=enqueue))
        await self._activate(track)

    async def toggle_play_pause(self) -> None:
        """Forward play/pause; `is_playing` only follows adapter callbacks."""
        track = self._state.current_track
        if track is None or self._state.loading:
            return
        adapter = self._adapter
        if adapter is None or not adapter.is_ready():
            await self._activate(track)
            return
        if self._state.is_playing:
            await self._guard(adapter.pause())
        else:
            await self._guard(adapter.play())

    async def stop(self) -> None:
        adapter = self._adapter
        if adapter is not None:
            await self._guard(adapter.stop())
        self._dispatch(Stop())
        if self._state.current_track is not None and self._status != "error":
            self._status = "stopped"
        await self._emit_state()

    async def next(self) -> None:
        await self._navigate(NextTrack())

    async def previous(self) -> None:
        await self._navigate(PreviousTrack())

    async def seek(self, seconds: float) -> None:
        if self._state.current_track is None:
            return
        self._dispatch(SetPosition(seconds))
        adapter = self._adapter
        if adapter is not None and adapter.is_ready():
            await self._guard(adapter.seek(self._state.position_seconds))
        await self._emit_state()

    async def seek_delta(self, delta_seconds: float) -> None:
        await self.seek(self._state.position_seconds + delta_seconds)

    async def set_volume(self, volume: float) -> None:
        self._dispatch(SetVolume(volume))
        adapter = self._adapter
        if adapter is not None:
            await self._guard(adapter.set_volume(self._state.volume))
        await self._emit_state()

    async def toggle_shuffle(self) -> None:
        self._dispatch(ToggleShuffle())
        await self._emit_state()

    async def toggle_repeat(self) -> None:
        self._dispatch(ToggleRepeat())
        await self._emit_state()

    async def add_to_queue(self, track: Track) -> None:
        self._dispatch(AddToQueue(track))
        await self._emit_state()

    async def remove_from_queue(self, track_id: str) -> None:
        self._dispatch(RemoveFromQueue(track_id))
        await self._emit_state()

    async def set_queue(self, tracks: list[Track] | tuple[Track, ...]) -> None:
        self._dispatch(SetQueue(tuple(tracks)))
        await self._emit_state()

    async def clear_queue(self) -> None:
        self._dispatch(ClearQueue())
        await self._emit_state()

    async def search(self, query: str) -> SearchResult:
        if self._search is None:
            return SearchResult()
        return await self._search.search(query)

    async def trending(self, limit: int = 50) -> list[Track]:
        if self._search is None:
            return []
        return await self._search.trending(limit)

    def _dispatch(self, command: Command) -> None:
        self._state = reduce(self._state, command, rng=self._shuffle_random)

    async def _navigate(self, command: NextTrack | PreviousTrack) -> None:
        before = self._state.current_track
        self._dispatch(command)
        after = self._state.current_track
        if after is None:
            await self._emit_state()
            return
        adapter = self._adapter
        if before is None or after.id != before.id or adapter is None:
            await self._activate(after)
            return
        if isinstance(command, NextTrack) and not self._state.is_playing:
            # End of queue without repeat.
            await self._guard(adapter.stop())
        elif self._state.position_seconds == 0.0:
            await self._guard(adapter.seek(0.0))
            if isinstance(command, NextTrack):
                await self._guard(adapter.play())
        await self._emit_state()

    async def _activate(self, track: Track) -> bool:
        """Tear down the current adapter, then load `track` with one fallback."""
        self._generation += 1
        generation = self._generation
        await self._teardown_adapter()
        if generation != self._generation:
            return False
        self._dispatch(LoadStarted())
        self._status = "loading"
        await self._emit_state()

        kind: AdapterKind | None = select_adapter(
            track, premium_authenticated=self._premium_authenticated()
        )
        last_error: MusicStreamError | None = None
        for _attempt in range(2):
            if kind is None:
                break
            adapter = self._adapter_factory(kind)
            self._adapter = adapter
            self._adapter_kind = kind
            adapter.set_event_handler(self._make_handler(adapter, generation))
            logger.debug("Activating %s adapter for %s", kind, track.id)
            try:
                await adapter.set_volume(self._state.volume)
                await adapter.load(track)
            except MusicStreamError as exc:
                last_error = exc
                await self._release(adapter)
                if generation != self._generation:
                    return False
                fallback = next_best(kind, track)
                logger.info(
                    "%s adapter failed for %s (%s); fallback: %s",
                    kind,
                    track.id,
                    getattr(exc, "reason", type(exc).__name__),
                    fallback or "none",
                )
                kind = fallback
                continue
            if generation != self._generation:
                return False
            self._dispatch(LoadFinished())
            if self._status == "loading":
                self._status = "ready"
            await self._emit_event_all(TrackChanged(track, kind))
            await self._emit_state()
            await self._guard(adapter.play())
            return True

        self._adapter_kind = None
        message = (
            _load_error_message(track, last_error)
            if last_error is not None
            else _format_user_error(
                what_failed=f"Could not play '{track.title}'.",
                likely_cause="no playback adapter accepted the track.",
                next_step="Pick another result.",
            )
        )
        logger.warning("All adapters failed for %s", track.id)
        self._dispatch(PlaybackFailed(message))
        self._status = "error"
        await self._emit_state()
        return False

    def _make_handler(
        self, adapter: PlaybackAdapter, generation: int
    ) -> Callable[[AdapterEvent], Awaitable[None]]:
        async def handler(event: AdapterEvent) -> None:
            if adapter is not self._adapter or generation != self._generation:
                return
            await self._handle_adapter_event(event, generation)

        return handler

    async def _handle_adapter_event(
        self, event: AdapterEvent, generation: int
    ) -> None:
        """Normalize adapter events into transport state and track-end decisions."""
        if isinstance(event, PositionUpdated):
            if event.duration > 0 and event.duration != self._state.duration_seconds:
                self._dispatch(DurationCorrected(event.duration))
            self._dispatch(SetPosition(event.position))
        elif isinstance(event, MediaChanged):
            self._dispatch(DurationCorrected(event.duration))
        elif isinstance(event, StateChanged):
            status = event.status
            if status == "playing":
                self._dispatch(PlaybackStatusChanged(True))
                self._status = "playing"
            elif status in {"paused", "stopped"}:
                self._dispatch(PlaybackStatusChanged(False))
                self._status = status
            elif status == "ended":
                self._dispatch(PlaybackStatusChanged(False))
                self._status = "ended"
                self._end_task = asyncio.create_task(
                    self._handle_track_end(generation)
                )
            elif status == "ready" and self._status == "loading":
                self._status = "ready"
            elif status == "error":
                self._report_failure("The playback source reported an error.")
        elif isinstance(event, AdapterFailed):
            self._report_failure(event.message)
        await self._emit_state()

    def _report_failure(self, detail: str) -> None:
        if "\nLikely cause:" in detail:
            message = detail
        else:
            message = _format_user_error(
                what_failed="Playback stopped unexpectedly.",
                likely_cause="the playback source failed while playing.",
                next_step="Retry the track or pick another result.",
                detail=detail,
            )
        self._dispatch(PlaybackFailed(message))
        self._status = "error"

    async def _handle_track_end(self, generation: int) -> None:
        """Apply repeat/shuffle policy after a natural track completion event."""
        if generation != self._generation:
            return
        await self._navigate(NextTrack())

    async def _guard(self, operation: Awaitable[None]) -> None:
        """Run an adapter command; failures become a visible error, not a crash."""
        try:
            await operation
        except MusicStreamError as exc:
            logger.warning("Adapter command failed: %s", exc)
            track = self._state.current_track
            if track is not None:
                self._dispatch(PlaybackFailed(_load_error_message(track, exc)))
            self._status = "error"
            await self._emit_state()

    def _premium_authenticated(self) -> bool:
        return self._session is not None and self._session.is_authenticated()

    async def _teardown_adapter(self) -> None:
        adapter, self._adapter = self._adapter, None
        self._adapter_kind = None
        if adapter is not None:
            adapter.set_event_handler(None)
            await adapter.destroy()

    async def _release(self, adapter: PlaybackAdapter) -> None:
        if self._adapter is adapter:
            self._adapter = None
            self._adapter_kind = None
        adapter.set_event_handler(None)
        await adapter.destroy()

    async def _emit_state(self) -> None:
        await self._emit_event_all(PlayerStateChanged(self._state))

    async def _emit_event_all(self, event: object) -> None:
        callbacks = [self._emit_event] if self._emit_event is not None else []
        callbacks.extend(self._subscribers)
        for callback in callbacks:
            try:
                await callback(event)
            except Exception:
                logger.exception(
                    "Event subscriber failed for %s", type(event).__name__
                )

"""Transport state record and its pure reducer.

`reduce()` is total: every command returns a valid `TransportState`. Driving
real adapters is the orchestrator's job; nothing here performs I/O.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import Literal, Union

from musicstream.models import Track

RepeatMode = Literal["none", "all", "one"]
HISTORY_LIMIT = 10
RESTART_THRESHOLD_S = 3.0
_REPEAT_CYCLE: dict[RepeatMode, RepeatMode] = {
    "none": "all",
    "all": "one",
    "one": "none",
}


@dataclass(frozen=True)
class TransportState:
    """Single normalized playback/queue record consumed by the UI.

    `duration_seconds` starts from the track's metadata and is replaced once
    the active adapter reports the real media length.
    """

    current_track: Track | None = None
    queue: tuple[Track, ...] = ()
    history: tuple[Track, ...] = ()
    current_index: int = -1
    is_playing: bool = False
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    volume: float = 1.0
    shuffle: bool = False
    repeat: RepeatMode = "none"
    loading: bool = False
    error: str | None = None


@dataclass(frozen=True)
class PlayTrack:
    track: Track
    enqueue: bool = False


@dataclass(frozen=True)
class NextTrack:
    pass


@dataclass(frozen=True)
class PreviousTrack:
    pass


@dataclass(frozen=True)
class AddToQueue:
    track: Track


@dataclass(frozen=True)
class RemoveFromQueue:
    track_id: str


@dataclass(frozen=True)
class SetQueue:
    tracks: tuple[Track, ...]


@dataclass(frozen=True)
class ClearQueue:
    pass


@dataclass(frozen=True)
class SetVolume:
    volume: float


@dataclass(frozen=True)
class SetPosition:
    seconds: float


@dataclass(frozen=True)
class ToggleShuffle:
    pass


@dataclass(frozen=True)
class ToggleRepeat:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class LoadStarted:
    pass


@dataclass(frozen=True)
class LoadFinished:
    pass


@dataclass(frozen=True)
class PlaybackFailed:
    message: str


@dataclass(frozen=True)
class PlaybackStatusChanged:
    is_playing: bool


@dataclass(frozen=True)
class DurationCorrected:
    seconds: float


Command = Union[
    PlayTrack,
    NextTrack,
    PreviousTrack,
    AddToQueue,
    RemoveFromQueue,
    SetQueue,
    ClearQueue,
    SetVolume,
    SetPosition,
    ToggleShuffle,
    ToggleRepeat,
    Stop,
    LoadStarted,
    LoadFinished,
    PlaybackFailed,
    PlaybackStatusChanged,
    DurationCorrected,
]


def index_of(queue: tuple[Track, ...], track: Track | None) -> int:
    if track is None:
        return -1
    for index, entry in enumerate(queue):
        if entry.id == track.id:
            return index
    return -1


def _finite(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def _clamp_position(seconds: float, duration: float) -> float:
    return max(0.0, min(float(seconds), max(0.0, duration)))


def _with_queue(state: TransportState, queue: tuple[Track, ...]) -> TransportState:
    return replace(
        state, queue=queue, current_index=index_of(queue, state.current_track)
    )


def _dedupe(tracks: tuple[Track, ...]) -> tuple[Track, ...]:
    seen: set[str] = set()
    unique: list[Track] = []
    for track in tracks:
        if track.id not in seen:
            seen.add(track.id)
            unique.append(track)
    return tuple(unique)


def _change_track(
    state: TransportState, track: Track, *, push_history: bool = True
) -> TransportState:
    history = state.history
    current = state.current_track
    if push_history and current is not None and current.id != track.id:
        history = (current, *history)[:HISTORY_LIMIT]
    return replace(
        state,
        current_track=track,
        history=history,
        current_index=index_of(state.queue, track),
        is_playing=True,
        position_seconds=0.0,
        duration_seconds=float(track.duration_seconds),
        loading=False,
        error=None,
    )


def _restart(state: TransportState) -> TransportState:
    return replace(state, position_seconds=0.0)


def _next(state: TransportState, rng: random.Random) -> TransportState:
    current = state.current_track
    if current is None:
        if state.queue:
            return _change_track(state, state.queue[0])
        return state
    if state.repeat == "one":
        return replace(state, position_seconds=0.0, is_playing=True)
    if not state.queue:
        return replace(state, is_playing=False)
    if state.shuffle:
        candidates = [track for track in state.queue if track.id != current.id]
        if candidates:
            return _change_track(state, rng.choice(candidates))
    next_index = state.current_index + 1
    if next_index < len(state.queue):
        return _change_track(state, state.queue[next_index])
    if state.repeat == "all":
        return _change_track(state, state.queue[0])
    return replace(state, is_playing=False)


def _previous(state: TransportState) -> TransportState:
    if state.current_track is None:
        return state
    if state.position_seconds > RESTART_THRESHOLD_S:
        return _restart(state)
    if state.history:
        previous, *rest = state.history
        moved = _change_track(state, previous, push_history=False)
        return replace(moved, history=tuple(rest))
    if state.current_index > 0:
        return _change_track(
            state, state.queue[state.current_index - 1], push_history=False
        )
    return _restart(state)


def reduce(
    state: TransportState,
    command: Command,
    *,
    rng: random.Random | None = None,
) -> TransportState:
    """Apply one command and return the next state."""
    if isinstance(command, PlayTrack):
        if command.enqueue and index_of(state.queue, command.track) < 0:
            state = replace(state, queue=(*state.queue, command.track))
        return _change_track(state, command.track)
    if isinstance(command, NextTrack):
        return _next(state, rng or random.Random())
    if isinstance(command, PreviousTrack):
        return _previous(state)
    if isinstance(command, AddToQueue):
        if index_of(state.queue, command.track) >= 0:
            return state
        return _with_queue(state, (*state.queue, command.track))
    if isinstance(command, RemoveFromQueue):
        queue = tuple(t for t in state.queue if t.id != command.track_id)
        return _with_queue(state, queue)
    if isinstance(command, SetQueue):
        return _with_queue(state, _dedupe(tuple(command.tracks)))
    if isinstance(command, ClearQueue):
        return _with_queue(state, ())
    if isinstance(command, SetVolume):
        if not _finite(command.volume):
            return state
        return replace(state, volume=max(0.0, min(float(command.volume), 1.0)))
    if isinstance(command, SetPosition):
        if not _finite(command.seconds) or state.current_track is None:
            return state
        return replace(
            state,
            position_seconds=_clamp_position(command.seconds, state.duration_seconds),
        )
    if isinstance(command, ToggleShuffle):
        return replace(state, shuffle=not state.shuffle)
    if isinstance(command, ToggleRepeat):
        return replace(state, repeat=_REPEAT_CYCLE[state.repeat])
    if isinstance(command, Stop):
        return replace(state, is_playing=False, position_seconds=0.0, loading=False)
    if isinstance(command, LoadStarted):
        return replace(
            state, loading=True, is_playing=False, position_seconds=0.0, error=None
        )
    if isinstance(command, LoadFinished):
        return replace(state, loading=False)
    if isinstance(command, PlaybackFailed):
        return replace(state, loading=False, is_playing=False, error=command.message)
    if isinstance(command, PlaybackStatusChanged):
        return replace(state, is_playing=command.is_playing)
    if isinstance(command, DurationCorrected):
        if not _finite(command.seconds) or command.seconds <= 0:
            return state
        duration = float(command.seconds)
        return replace(
            state,
            duration_seconds=duration,
            position_seconds=_clamp_position(state.position_seconds, duration),
        )
    raise TypeError(f"Unknown transport command: {command!r}")

"""Direct-stream playback adapter using python-vlc.

Preview clips, full streams, and local files all go through one VLC media
player owned by a dedicated thread. Async callers talk to that thread through
a command queue; the thread reports back with events scheduled on the loop.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from musicstream.errors import LoadError
from musicstream.media_formats import is_http_url
from musicstream.models import Track
from musicstream.utils.async_utils import run_blocking

from .playback_adapter import (
    AdapterEvent,
    AdapterFailed,
    AdapterKind,
    AdapterStatus,
    EventHandler,
    MediaChanged,
    PositionUpdated,
    StateChanged,
    clamp,
)

logger = logging.getLogger(__name__)

VlcFactory = Callable[[], Any]

PARSE_TIMEOUT_S = 10.0
_REPORTED_STATES: frozenset[AdapterStatus] = frozenset(
    {"playing", "paused", "stopped", "ended"}
)


def import_vlc() -> Any:
    """Return the `vlc` module; raises when python-vlc or libVLC is missing."""
    import vlc

    return vlc


@dataclass
class _Command:
    name: str
    args: tuple[Any, ...]
    future: asyncio.Future[Any] | None


@dataclass
class _PendingParse:
    media: Any
    future: asyncio.Future[Any] | None
    deadline: float


class DirectStreamAdapter:
    """Adapter backed by a dedicated VLC thread."""

    kind: AdapterKind = "direct"

    def __init__(
        self,
        *,
        vlc_factory: VlcFactory | None = None,
        poll_interval_s: float = 0.2,
        parse_timeout_s: float = PARSE_TIMEOUT_S,
    ) -> None:
        self._vlc_factory = vlc_factory or import_vlc
        self._poll_interval = poll_interval_s
        self._parse_timeout = parse_timeout_s
        self._handler: EventHandler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: queue.Queue[_Command] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._pending: _PendingParse | None = None
        self._loaded = False
        self._destroyed = False
        self._duration = 0.0
        self._volume = 1.0

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self._handler = handler

    async def load(self, track: Track) -> None:
        url = track.direct_audio_url
        if url is None:
            raise LoadError(
                f"No fetchable audio URL for {track.id}.",
                reason="unsupported",
                details={"track_id": track.id},
            )
        await self._start()
        await self._emit(StateChanged("loading"))
        try:
            parsed_ms = int(await self._submit("load", url, self._volume))
        except LoadError:
            raise
        except Exception as exc:
            raise LoadError(
                f"Failed to open {url}: {exc}",
                reason="network",
                details={"track_id": track.id, "url": url},
            ) from exc
        parsed = parsed_ms / 1000 if parsed_ms > 0 else 0.0
        self._duration = parsed or float(track.duration_seconds)
        self._loaded = True
        if parsed:
            await self._emit(MediaChanged(parsed))
        await self._emit(PositionUpdated(0.0, self._duration))
        await self._emit(StateChanged("ready"))

    async def play(self) -> None:
        if self._loaded:
            await self._submit("play")

    async def pause(self) -> None:
        if self._loaded:
            await self._submit("pause")

    async def stop(self) -> None:
        if self._loaded:
            await self._submit("stop")

    async def seek(self, seconds: float) -> None:
        if not self._loaded:
            return
        pos = clamp(seconds, 0.0, self._duration) if self._duration else 0.0
        await self._submit("seek_ms", int(pos * 1000))
        await self._emit(PositionUpdated(pos, self._duration))

    async def set_volume(self, volume: float) -> None:
        self._volume = clamp(volume, 0.0, 1.0)
        if self._thread is not None:
            await self._submit("set_volume", self._volume)

    async def get_position(self) -> float:
        if not self._loaded:
            return 0.0
        return int(await self._submit("get_position_ms")) / 1000

    async def get_duration(self) -> float:
        if not self._loaded:
            return 0.0
        length_ms = int(await self._submit("get_duration_ms"))
        return length_ms / 1000 if length_ms > 0 else self._duration

    def is_ready(self) -> bool:
        return self._loaded and not self._destroyed

    async def destroy(self) -> None:
        self._destroyed = True
        self._handler = None
        self._loaded = False
        thread, self._thread = self._thread, None
        if thread is not None:
            self._stop_event.set()
            self._queue.put(_Command("wake", (), None))
            await run_blocking(thread.join, 2.0)
        self._cancel_outstanding()

    def _cancel_outstanding(self) -> None:
        """Fail the pending parse and every queued command after teardown."""
        cancelled = LoadError("Playback was cancelled.", reason="network")
        pending, self._pending = self._pending, None
        if pending is not None and pending.future is not None:
            self._resolve_future_exception(pending.future, cancelled)
        while True:
            try:
                cmd = self._queue.get_nowait()
            except queue.Empty:
                break
            if cmd.future is not None:
                self._resolve_future_exception(cmd.future, cancelled)

    async def _start(self) -> None:
        if self._destroyed:
            raise LoadError("Adapter already destroyed.", reason="network")
        if self._thread is not None:
            return
        self._loop = asyncio.get_running_loop()
        ready_future: asyncio.Future[None] = self._loop.create_future()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._thread_main,
            args=(ready_future,),
            name="VLCStreamThread",
            daemon=True,
        )
        self._thread.start()
        try:
            await ready_future
        except LoadError:
            self._thread = None
            raise

    async def _submit(self, name: str, *args: Any) -> Any:
        if self._destroyed:
            raise LoadError("Adapter already destroyed.", reason="network")
        if self._loop is None or self._thread is None:
            raise RuntimeError("Direct-stream adapter not started.")
        future: asyncio.Future[Any] = self._loop.create_future()
        self._queue.put(_Command(name, args, future))
        return await future

    def _thread_main(self, ready_future: asyncio.Future[None]) -> None:
        try:
            vlc = self._vlc_factory()
            instance = vlc.Instance("--no-video", "--quiet")
            player = instance.media_player_new()
        except Exception as exc:
            logger.warning("VLC unavailable: %s", exc)
            self._notify_future_exception(
                ready_future,
                LoadError(
                    "VLC backend unavailable. Ensure VLC/libVLC is installed.",
                    reason="backend_unavailable",
                    details={"error": str(exc)},
                ),
            )
            return

        self._notify_future_result(ready_future, None)
        last_pos = -1
        last_state: AdapterStatus = "idle"

        while not self._stop_event.is_set():
            try:
                cmd = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                cmd = None

            if cmd is not None and cmd.name != "wake":
                try:
                    result = self._handle_command(cmd, vlc, instance, player)
                    if cmd.name != "load":
                        self._notify_future_result(cmd.future, result)
                except Exception as exc:
                    self._notify_future_exception(cmd.future, exc)
                    if cmd.name != "load":
                        self._emit_event(AdapterFailed(str(exc)))

            self._check_pending_parse()

            state = _map_state(player)
            if state == "error" and last_state != "error":
                last_state = state
                self._emit_event(AdapterFailed("VLC reported a playback error."))
            elif state in _REPORTED_STATES and state != last_state:
                last_state = state
                self._emit_event(StateChanged(state))

            if state in {"playing", "paused"}:
                pos = max(player.get_time(), 0)
                length = max(player.get_length(), 0)
                if pos != last_pos:
                    last_pos = pos
                    duration_s = length / 1000 if length > 0 else self._duration
                    self._emit_event(PositionUpdated(pos / 1000, duration_s))
                if state == "playing" and length > 0 and pos >= length:
                    player.stop()
                    last_state = "stopped"
                    self._emit_event(StateChanged("ended"))

        player.stop()
        release = getattr(player, "release", None)
        if callable(release):
            release()

    def _handle_command(
        self, cmd: _Command, vlc: Any, instance: Any, player: Any
    ) -> Any:
        name = cmd.name
        if name == "load":
            url, volume = cmd.args
            if is_http_url(url) or url.startswith("file://"):
                media = instance.media_new(url)
                flag = vlc.MediaParseFlag.network
            else:
                media = instance.media_new_path(url)
                flag = vlc.MediaParseFlag.local
            player.set_media(media)
            player.audio_set_volume(int(round(volume * 100)))
            media.parse_with_options(flag, int(self._parse_timeout * 1000))
            self._pending = _PendingParse(
                media=media,
                future=cmd.future,
                deadline=time.monotonic() + self._parse_timeout + 1.0,
            )
            return None
        if name == "play":
            player.play()
            return None
        if name == "pause":
            player.set_pause(1)
            return None
        if name == "stop":
            player.stop()
            return None
        if name == "seek_ms":
            (pos,) = cmd.args
            player.set_time(int(pos))
            return None
        if name == "set_volume":
            (vol,) = cmd.args
            player.audio_set_volume(int(round(vol * 100)))
            return None
        if name == "get_position_ms":
            return max(player.get_time(), 0)
        if name == "get_duration_ms":
            return max(player.get_length(), 0)
        raise ValueError(f"Unknown command {name}")

    def _check_pending_parse(self) -> None:
        pending = self._pending
        if pending is None:
            return
        status = _enum_name(pending.media.get_parsed_status())
        if status == "done":
            self._pending = None
            self._notify_future_result(
                pending.future, max(pending.media.get_duration(), 0)
            )
            return
        if status in {"failed", "timeout", "skipped"} or (
            time.monotonic() >= pending.deadline
        ):
            self._pending = None
            self._notify_future_exception(
                pending.future,
                LoadError(
                    f"Media could not be opened (parse status: {status or 'pending'}).",
                    reason="network",
                ),
            )

    def _emit_event(self, event: AdapterEvent) -> None:
        if self._loop is None or self._destroyed:
            return
        asyncio.run_coroutine_threadsafe(self._emit(event), self._loop)

    async def _emit(self, event: AdapterEvent) -> None:
        handler = self._handler
        if handler is None or self._destroyed:
            return
        await handler(event)

    def _notify_future_result(
        self, future: asyncio.Future[Any] | None, value: Any
    ) -> None:
        if future is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._resolve_future_result, future, value)

    def _notify_future_exception(
        self, future: asyncio.Future[Any] | None, exc: Exception
    ) -> None:
        if future is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._resolve_future_exception, future, exc)

    @staticmethod
    def _resolve_future_result(future: asyncio.Future[Any], value: Any) -> None:
        if not future.done():
            future.set_result(value)

    @staticmethod
    def _resolve_future_exception(
        future: asyncio.Future[Any], exc: Exception
    ) -> None:
        if not future.done():
            future.set_exception(exc)


def _enum_name(value: Any) -> str:
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name.lower()
    return str(value).rsplit(".", 1)[-1].lower()


def _map_state(player: Any) -> AdapterStatus:
    try:
        name = _enum_name(player.get_state())
    except Exception:
        return "error"
    if name == "playing":
        return "playing"
    if name == "paused":
        return "paused"
    if name == "stopped":
        return "stopped"
    if name == "ended":
        return "ended"
    if name in {"opening", "buffering"}:
        return "loading"
    if name == "error":
        return "error"
    return "idle"

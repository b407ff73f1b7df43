"""Premium-device adapter driving Spotify Connect through the Web API.

Audio plays on a registered Spotify device; this adapter only sends remote
control commands and polls `/me/player` to mirror position and play state.
Entitlement and device problems are surfaced as typed `LoadError`s.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any

import httpx

from musicstream.errors import AuthError, LoadError, LoadErrorReason, MusicStreamError
from musicstream.media_formats import extract_spotify_track_id
from musicstream.models import Track

from .playback_adapter import (
    AdapterEvent,
    AdapterFailed,
    AdapterKind,
    EventHandler,
    MediaChanged,
    PositionUpdated,
    StateChanged,
    clamp,
)
from .spotify_session import SpotifySession

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE = "https://api.spotify.com/v1"
END_WINDOW_S = 1.5
TEARDOWN_TIMEOUT_S = 2.0

RECONNECT_MESSAGE = (
    "Spotify playback is not authorized.\n"
    "Likely cause: the account session expired and could not be refreshed.\n"
    "Next step: reconnect your Spotify account."
)


def spotify_track_id(track: Track) -> str | None:
    """Catalog id for a Spotify track, read from its open.spotify.com link first."""
    if track.source != "spotify":
        return None
    linked = extract_spotify_track_id(track.playable_url or "")
    return linked or track.native_id or None


def select_device(
    devices: list[dict[str, Any]], preferred_name: str | None = None
) -> dict[str, Any] | None:
    """Pick the named device, else the active one, else the first."""
    usable = [
        device
        for device in devices
        if isinstance(device, dict)
        and device.get("id")
        and not device.get("is_restricted", False)
    ]
    if not usable:
        return None
    if preferred_name:
        wanted = preferred_name.casefold()
        for device in usable:
            if str(device.get("name", "")).casefold() == wanted:
                return device
    for device in usable:
        if device.get("is_active"):
            return device
    return usable[0]


class PremiumDeviceAdapter:
    """Remote-control adapter for full Spotify tracks (Premium only)."""

    kind: AdapterKind = "premium"

    def __init__(
        self,
        session: SpotifySession,
        *,
        client: httpx.AsyncClient | None = None,
        api_base: str = SPOTIFY_API_BASE,
        device_name: str | None = None,
        poll_interval_s: float = 1.0,
    ) -> None:
        self._session = session
        self._client = client
        self._owns_client = client is None
        self._api_base = api_base.rstrip("/")
        self._device_name = device_name
        self._poll_interval = poll_interval_s
        self._handler: EventHandler | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._track: Track | None = None
        self._spotify_id: str | None = None
        self._device_id: str | None = None
        self._loaded = False
        self._started = False
        self._playing = False
        self._ended = False
        self._destroyed = False
        self._position = 0.0
        self._duration = 0.0
        self._volume = 1.0

    @property
    def device_id(self) -> str | None:
        return self._device_id

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self._handler = handler

    async def load(self, track: Track) -> None:
        native = spotify_track_id(track)
        if native is None:
            raise LoadError(
                f"{track.id} is not a Spotify catalog track.",
                reason="unsupported",
                details={"track_id": track.id},
            )
        await self._emit(StateChanged("loading"))
        try:
            info = await self._request_json(
                "GET", f"/tracks/{native}", not_found="not_found"
            )
            devices_payload = await self._request_json(
                "GET", "/me/player/devices", not_found="no_active_device"
            )
            devices = devices_payload.get("devices") if devices_payload else None
            device = select_device(
                devices if isinstance(devices, list) else [], self._device_name
            )
            if device is None:
                raise LoadError(
                    "No Spotify device is available.\n"
                    "Likely cause: no Spotify app is open on any device.\n"
                    "Next step: open Spotify on a device and try again.",
                    reason="no_active_device",
                    details={"track_id": track.id},
                )
            self._device_id = str(device["id"])
            await self._request(
                "PUT",
                "/me/player",
                json={"device_ids": [self._device_id], "play": False},
                not_found="no_active_device",
            )
            await self._apply_volume()
        except AuthError as exc:
            raise LoadError(
                RECONNECT_MESSAGE, reason="auth", details={"track_id": track.id}
            ) from exc

        duration_ms = info.get("duration_ms") if info else None
        if isinstance(duration_ms, (int, float)) and duration_ms > 0:
            self._duration = float(duration_ms) / 1000
        else:
            self._duration = float(track.duration_seconds)
        self._track = track
        self._spotify_id = native
        self._position = 0.0
        self._loaded = True
        logger.debug(
            "Spotify device %s ready for %s", device.get("name"), track.id
        )
        if self._duration:
            await self._emit(MediaChanged(self._duration))
        await self._emit(PositionUpdated(0.0, self._duration))
        await self._emit(StateChanged("ready"))
        if self._poll_task is None and not self._destroyed:
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def play(self) -> None:
        if not self._loaded or self._playing or self._track is None:
            return
        if not self._started or self._ended:
            body: dict[str, Any] = {
                "uris": [f"spotify:track:{self._spotify_id}"],
                "position_ms": int(0 if self._ended else self._position * 1000),
            }
            await self._command("PUT", "/me/player/play", json=body)
            self._started = True
            self._ended = False
        else:
            await self._command("PUT", "/me/player/play")
        self._playing = True
        await self._emit(StateChanged("playing"))

    async def pause(self) -> None:
        if not self._loaded or not self._playing:
            return
        await self._command("PUT", "/me/player/pause")
        self._playing = False
        await self._emit(StateChanged("paused"))

    async def stop(self) -> None:
        if not self._loaded:
            return
        if self._playing:
            await self._command("PUT", "/me/player/pause")
            self._playing = False
        if self._started:
            await self._command("PUT", "/me/player/seek", params={"position_ms": 0})
        self._position = 0.0
        await self._emit(PositionUpdated(0.0, self._duration))
        await self._emit(StateChanged("stopped"))

    async def seek(self, seconds: float) -> None:
        if not self._loaded:
            return
        pos = clamp(seconds, 0.0, self._duration)
        if self._started:
            await self._command(
                "PUT", "/me/player/seek", params={"position_ms": int(pos * 1000)}
            )
        self._position = pos
        await self._emit(PositionUpdated(pos, self._duration))

    async def set_volume(self, volume: float) -> None:
        self._volume = clamp(volume, 0.0, 1.0)
        if self._loaded:
            await self._command(
                "PUT",
                "/me/player/volume",
                params={"volume_percent": int(round(self._volume * 100))},
            )

    async def _apply_volume(self) -> None:
        try:
            await self._request(
                "PUT",
                "/me/player/volume",
                params={
                    "volume_percent": int(round(self._volume * 100)),
                    "device_id": self._device_id,
                },
                not_found="no_active_device",
            )
        except LoadError as exc:
            # Some devices (phones, speakers) refuse remote volume changes.
            logger.debug("Spotify device volume not applied: %s", exc)

    async def get_position(self) -> float:
        return self._position

    async def get_duration(self) -> float:
        return self._duration

    def is_ready(self) -> bool:
        return self._loaded and not self._destroyed

    async def destroy(self) -> None:
        if self._destroyed:
            return
        was_playing = self._playing
        self._destroyed = True
        self._handler = None
        self._loaded = False
        self._playing = False
        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()
            if task is not asyncio.current_task():
                with suppress(asyncio.CancelledError):
                    await task
        if was_playing:
            try:
                await asyncio.wait_for(
                    self._request("PUT", "/me/player/pause"), TEARDOWN_TIMEOUT_S
                )
            except (MusicStreamError, asyncio.TimeoutError) as exc:
                logger.debug("Remote pause on teardown failed: %s", exc)
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _poll_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._poll_interval)
                if not await self._poll_once():
                    return
        except asyncio.CancelledError:
            pass

    async def _poll_once(self) -> bool:
        """Mirror remote player state; returns False once polling should stop."""
        try:
            payload = await self._request_json("GET", "/me/player")
        except AuthError:
            await self._emit(AdapterFailed(RECONNECT_MESSAGE))
            return False
        except LoadError as exc:
            logger.debug("Spotify player poll failed: %s", exc)
            return True
        if not payload or self._track is None or not self._started:
            return True
        item = payload.get("item")
        if isinstance(item, dict) and item.get("id") not in (None, self._spotify_id):
            # Remote moved on to another track (autoplay/radio).
            if self._playing:
                await self._mark_ended()
            return True
        if isinstance(item, dict):
            duration_ms = item.get("duration_ms")
            if isinstance(duration_ms, (int, float)) and duration_ms > 0:
                self._duration = float(duration_ms) / 1000
        was_near_end = self._near_end()
        progress_ms = payload.get("progress_ms")
        if isinstance(progress_ms, (int, float)):
            self._position = clamp(float(progress_ms) / 1000, 0.0, self._duration)
            await self._emit(PositionUpdated(self._position, self._duration))
        is_playing = bool(payload.get("is_playing"))
        if self._playing and not is_playing:
            if was_near_end or self._near_end():
                await self._mark_ended()
            else:
                self._playing = False
                await self._emit(StateChanged("paused"))
        elif not self._playing and is_playing and not self._ended:
            self._playing = True
            await self._emit(StateChanged("playing"))
        return True

    def _near_end(self) -> bool:
        return self._duration > 0 and self._position >= self._duration - END_WINDOW_S

    async def _mark_ended(self) -> None:
        self._playing = False
        self._ended = True
        self._position = self._duration
        if self._track is not None:
            logger.debug("Spotify playback reached end of %s", self._track.id)
        await self._emit(PositionUpdated(self._duration, self._duration))
        await self._emit(StateChanged("ended"))

    async def _command(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> None:
        params = {**(params or {}), "device_id": self._device_id}
        try:
            await self._request(
                method, path, params=params, json=json, not_found="no_active_device"
            )
        except AuthError as exc:
            raise LoadError(RECONNECT_MESSAGE, reason="auth") from exc

    async def _request_json(
        self, method: str, path: str, *, not_found: LoadErrorReason = "not_found"
    ) -> dict[str, Any] | None:
        response = await self._request(method, path, not_found=not_found)
        if response.status_code == 204 or not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            raise LoadError(
                f"Spotify returned invalid JSON for {path}.", reason="network"
            ) from exc
        return payload if isinstance(payload, dict) else None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        not_found: LoadErrorReason = "not_found",
    ) -> httpx.Response:
        """Send an authorized request, refreshing the token once on HTTP 401."""
        response = await self._send(method, path, params=params, json=json)
        if response.status_code == 401:
            logger.info("Spotify rejected the access token; refreshing.")
            self._session.invalidate()
            response = await self._send(method, path, params=params, json=json)
            if response.status_code == 401:
                raise AuthError("Spotify rejected the refreshed access token.")
        _raise_for_status(response, path, not_found=not_found)
        return response

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
    ) -> httpx.Response:
        token = await self._session.get_access_token()
        if token is None:
            raise AuthError("No Spotify access token available.")
        client = self._http()
        try:
            return await client.request(
                method,
                f"{self._api_base}{path}",
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise LoadError(
                f"Spotify request {method} {path} failed: {exc}", reason="network"
            ) from exc

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=8.0)
        return self._client

    async def _emit(self, event: AdapterEvent) -> None:
        handler = self._handler
        if handler is None or self._destroyed:
            return
        await handler(event)


def _raise_for_status(
    response: httpx.Response, path: str, *, not_found: LoadErrorReason
) -> None:
    status = response.status_code
    if status < 400:
        return
    if status == 403:
        raise LoadError(
            "Spotify refused playback control.\n"
            "Likely cause: the account does not have Spotify Premium.\n"
            "Next step: use a Premium account or play the preview instead.",
            reason="premium_required",
            details={"path": path, "status": status},
        )
    if status == 404:
        raise LoadError(
            f"Spotify returned 404 for {path}.",
            reason=not_found,
            details={"path": path, "status": status},
        )
    raise LoadError(
        f"Spotify request {path} failed with HTTP {status}.",
        reason="network",
        details={"path": path, "status": status},
    )

"""Adapter for sources that only offer a browsable page.

The URL is opened in a new browsing context and the adapter then behaves like
`SimulationAdapter`, so the rest of the system still receives time updates
and an end event.
"""

from __future__ import annotations

import logging
import webbrowser
from collections.abc import Awaitable, Callable

from musicstream.errors import LoadError
from musicstream.media_formats import extract_youtube_video_id, youtube_watch_url
from musicstream.models import Track
from musicstream.utils.async_utils import run_blocking

from .playback_adapter import AdapterKind
from .simulation_adapter import DEFAULT_DURATION_S, SimulationAdapter

logger = logging.getLogger(__name__)

UrlOpener = Callable[[str], Awaitable[bool]]


async def open_in_browser(url: str) -> bool:
    """Open `url` in a new browser tab without blocking the event loop."""
    return bool(await run_blocking(webbrowser.open_new_tab, url))


def resolve_external_url(track: Track) -> str | None:
    if track.web_url:
        return track.web_url
    if track.source == "youtube":
        video_id = extract_youtube_video_id(track.native_id)
        if video_id:
            return youtube_watch_url(video_id)
    return None


class ExternalLinkAdapter(SimulationAdapter):
    """Open-in-app / embedding-blocked playback with simulated transport."""

    kind: AdapterKind = "external"

    def __init__(
        self,
        *,
        opener: UrlOpener | None = None,
        tick_interval_s: float = 1.0,
        default_duration_s: float = DEFAULT_DURATION_S,
    ) -> None:
        super().__init__(
            tick_interval_s=tick_interval_s, default_duration_s=default_duration_s
        )
        self._opener = opener or open_in_browser
        self.opened_url: str | None = None

    async def load(self, track: Track) -> None:
        url = resolve_external_url(track)
        if url is None:
            raise LoadError(
                f"No web URL available for {track.id}.",
                reason="no_web_url",
                details={"track_id": track.id},
            )
        try:
            opened = await self._opener(url)
        except Exception as exc:
            raise LoadError(
                f"Failed to open {url}: {exc}",
                reason="navigation_failed",
                details={"track_id": track.id, "url": url},
            ) from exc
        if not opened:
            raise LoadError(
                f"No browser accepted {url}.",
                reason="navigation_failed",
                details={"track_id": track.id, "url": url},
            )
        self.opened_url = url
        logger.info("Opened %s externally for %s", url, track.id)
        await super().load(track)

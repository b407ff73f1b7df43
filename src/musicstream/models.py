"""Track descriptors and search result models shared by every component.

A `Track` is immutable once created. Queue and history entries hold references
to the same instances, so identity (`Track.id`, composed as `source:nativeId`)
is the only key used for de-duplication and queue membership.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from .media_formats import is_direct_audio_url, is_web_url

TrackSource = Literal["spotify", "youtube", "jamendo", "soundcloud", "demo"]
Capability = Literal["full-stream", "preview-only", "external-link-only", "none"]

TRACK_SOURCES: tuple[TrackSource, ...] = (
    "spotify",
    "youtube",
    "jamendo",
    "soundcloud",
    "demo",
)
PREMIUM_SOURCES: frozenset[str] = frozenset({"spotify"})
"""Sources whose full tracks need an authenticated remote playback device."""

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"


def make_track_id(source: str, native_id: str) -> str:
    return f"{source}:{native_id}"


def compute_capability(
    playable_url: str | None, preview_url: str | None
) -> Capability:
    """Classify how much of a track can actually be heard.

    Direct audio in `playable_url` wins over a preview clip; a browsable page
    in either field only allows external navigation.
    """
    if is_direct_audio_url(playable_url):
        return "full-stream"
    if is_direct_audio_url(preview_url):
        return "preview-only"
    if is_web_url(playable_url) or is_web_url(preview_url):
        return "external-link-only"
    return "none"


def _display_text(value: str | None, fallback: str) -> str:
    if value is None:
        return fallback
    text = value.strip()
    return text or fallback


@dataclass(frozen=True)
class Track:
    """Immutable track descriptor produced by search or the demo catalog."""

    id: str
    title: str
    artist: str
    album: str
    duration_seconds: int
    source: TrackSource
    playable_url: str | None = None
    preview_url: str | None = None
    cover_url: str | None = None
    explicit: bool = False
    popularity: float | None = None
    genres: tuple[str, ...] = ()
    release_date: str | None = None
    license: str | None = None
    capability: Capability = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "title", _display_text(self.title, UNKNOWN_TITLE))
        object.__setattr__(
            self, "artist", _display_text(self.artist, UNKNOWN_ARTIST)
        )
        object.__setattr__(self, "album", _display_text(self.album, UNKNOWN_ALBUM))
        object.__setattr__(
            self, "duration_seconds", max(0, int(self.duration_seconds or 0))
        )
        object.__setattr__(
            self,
            "capability",
            compute_capability(self.playable_url, self.preview_url),
        )

    @property
    def native_id(self) -> str:
        _source, _sep, native = self.id.partition(":")
        return native

    @property
    def web_url(self) -> str | None:
        """Browsable URL for external navigation, if any."""
        if is_web_url(self.playable_url):
            return self.playable_url
        if is_web_url(self.preview_url):
            return self.preview_url
        return None

    @property
    def direct_audio_url(self) -> str | None:
        """Best fetchable audio URL: full stream first, then preview clip."""
        if is_direct_audio_url(self.playable_url):
            return self.playable_url
        if is_direct_audio_url(self.preview_url):
            return self.preview_url
        return None

    @property
    def is_premium_source(self) -> bool:
        return self.source in PREMIUM_SOURCES


@dataclass(frozen=True)
class Artist:
    id: str
    name: str
    source: TrackSource
    image_url: str | None = None
    genres: tuple[str, ...] = ()
    followers: int | None = None
    popularity: float | None = None


@dataclass(frozen=True)
class Album:
    id: str
    title: str
    artist: str
    source: TrackSource
    image_url: str | None = None
    release_date: str | None = None
    track_count: int | None = None


@dataclass(frozen=True)
class SearchResult:
    """Union of every provider's contribution for one query."""

    tracks: tuple[Track, ...] = ()
    artists: tuple[Artist, ...] = ()
    albums: tuple[Album, ...] = ()
    failed_sources: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.tracks) + len(self.artists) + len(self.albums)

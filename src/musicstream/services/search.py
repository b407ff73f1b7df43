"""Aggregated search over the proxy's per-source endpoints.

Each provider maps its source's JSON into `Track` descriptors. Providers run
concurrently; a failing source contributes nothing and is listed in
`SearchResult.failed_sources`. Results are concatenated in provider order with
no de-duplication or ranking across sources.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import Any, Protocol

import httpx

from musicstream.catalog import demo_tracks
from musicstream.errors import SearchProviderError
from musicstream.media_formats import youtube_watch_url
from musicstream.models import (
    Album,
    Artist,
    SearchResult,
    Track,
    TrackSource,
    make_track_id,
)

logger = logging.getLogger(__name__)

SEARCH_TIMEOUT_S = 10.0
DEFAULT_YOUTUBE_DURATION = "PT3M"
TRENDING_SPOTIFY_SEEDS = (
    "pop music",
    "rock hits",
    "hip hop",
    "electronic",
    "jazz classics",
)
TRENDING_JAMENDO_SEED = "popular"
TRENDING_YOUTUBE_SEED = "trending music"

_YOUTUBE_TITLE_NOISE = re.compile(
    r"\(Official Music Video\)|\(Official Video\)|\(Official\)|\(Music Video\)|\(MV\)",
    re.IGNORECASE,
)
_ISO_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def parse_iso8601_duration(value: str) -> int:
    """Parse a YouTube duration such as `PT4M13S` into whole seconds."""
    match = _ISO_DURATION.match(value or "")
    if not match:
        return 0
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def clean_youtube_title(title: str) -> str:
    return _YOUTUBE_TITLE_NOISE.sub("", title).strip()


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _popularity(value: Any) -> float | None:
    number = _number(value)
    return None if number is None else number / 100


def _first_image(images: Any) -> str | None:
    first = _dict(_list(images)[0]) if _list(images) else {}
    return _str(first.get("url"))


def _first_artist(artists: Any) -> str:
    first = _dict(_list(artists)[0]) if _list(artists) else {}
    return _str(first.get("name")) or ""


def map_spotify_payload(payload: dict[str, Any]) -> SearchResult:
    """Map a Spotify `/v1/search` body into tracks, artists, and albums."""
    tracks: list[Track] = []
    for item in _list(_dict(payload.get("tracks")).get("items")):
        item = _dict(item)
        native = _str(item.get("id"))
        if native is None:
            continue
        album = _dict(item.get("album"))
        duration_ms = _number(item.get("duration_ms")) or 0.0
        tracks.append(
            Track(
                id=make_track_id("spotify", native),
                title=_str(item.get("name")) or "",
                artist=_first_artist(item.get("artists")),
                album=_str(album.get("name")) or "",
                duration_seconds=round(duration_ms / 1000),
                source="spotify",
                playable_url=_str(_dict(item.get("external_urls")).get("spotify")),
                preview_url=_str(item.get("preview_url")),
                cover_url=_first_image(album.get("images")),
                explicit=bool(item.get("explicit", False)),
                popularity=_popularity(item.get("popularity")),
                release_date=_str(album.get("release_date")),
                license="Spotify",
            )
        )
    artists: list[Artist] = []
    for item in _list(_dict(payload.get("artists")).get("items")):
        item = _dict(item)
        native = _str(item.get("id"))
        if native is None:
            continue
        followers = _number(_dict(item.get("followers")).get("total"))
        artists.append(
            Artist(
                id=make_track_id("spotify", native),
                name=_str(item.get("name")) or "",
                source="spotify",
                image_url=_first_image(item.get("images")),
                genres=tuple(g for g in _list(item.get("genres")) if isinstance(g, str)),
                followers=int(followers) if followers is not None else None,
                popularity=_popularity(item.get("popularity")),
            )
        )
    albums: list[Album] = []
    for item in _list(_dict(payload.get("albums")).get("items")):
        item = _dict(item)
        native = _str(item.get("id"))
        if native is None:
            continue
        total_tracks = _number(item.get("total_tracks"))
        albums.append(
            Album(
                id=make_track_id("spotify", native),
                title=_str(item.get("name")) or "",
                artist=_first_artist(item.get("artists")) or "Unknown Artist",
                source="spotify",
                image_url=_first_image(item.get("images")),
                release_date=_str(item.get("release_date")),
                track_count=int(total_tracks) if total_tracks is not None else None,
            )
        )
    return SearchResult(
        tracks=tuple(tracks), artists=tuple(artists), albums=tuple(albums)
    )


def map_youtube_payload(payload: dict[str, Any]) -> tuple[Track, ...]:
    """Map a YouTube search list into external-link-only tracks."""
    tracks: list[Track] = []
    for item in _list(payload.get("items")):
        item = _dict(item)
        video_id = _str(_dict(item.get("id")).get("videoId"))
        if video_id is None:
            continue
        snippet = _dict(item.get("snippet"))
        thumbnails = _dict(snippet.get("thumbnails"))
        cover = None
        for size in ("high", "medium", "default"):
            cover = _str(_dict(thumbnails.get(size)).get("url"))
            if cover:
                break
        watch_url = youtube_watch_url(video_id)
        tracks.append(
            Track(
                id=make_track_id("youtube", video_id),
                title=clean_youtube_title(_str(snippet.get("title")) or ""),
                artist=_str(snippet.get("channelTitle")) or "",
                album="YouTube Music",
                duration_seconds=parse_iso8601_duration(
                    _str(snippet.get("duration")) or DEFAULT_YOUTUBE_DURATION
                ),
                source="youtube",
                playable_url=watch_url,
                preview_url=watch_url,
                cover_url=cover,
                popularity=0.8,
                genres=("Music",),
                release_date=_str(snippet.get("publishedAt")),
                license="YouTube",
            )
        )
    return tuple(tracks)


def map_jamendo_payload(payload: dict[str, Any]) -> tuple[Track, ...]:
    """Map a Jamendo `tracks` result list; audio URLs are full streams."""
    tracks: list[Track] = []
    for item in _list(payload.get("results")):
        item = _dict(item)
        raw_id = item.get("id")
        if raw_id is None or isinstance(raw_id, (dict, list)):
            continue
        audio = _str(item.get("audio"))
        tags = item.get("tags")
        if isinstance(tags, str):
            genres = tuple(tag for tag in tags.split() if tag)
        else:
            genres = tuple(tag for tag in _list(tags) if isinstance(tag, str))
        tracks.append(
            Track(
                id=make_track_id("jamendo", str(raw_id)),
                title=_str(item.get("name")) or "",
                artist=_str(item.get("artist_name")) or "",
                album=_str(item.get("album_name")) or "",
                duration_seconds=int(_number(item.get("duration")) or 0),
                source="jamendo",
                playable_url=audio,
                preview_url=audio,
                cover_url=_str(item.get("image")),
                popularity=_popularity(item.get("popularity")),
                genres=genres,
                release_date=_str(item.get("releasedate")),
                license=_str(item.get("license_ccurl")) or "Creative Commons",
            )
        )
    return tuple(tracks)


class SearchProvider(Protocol):
    source: TrackSource
    enabled: bool

    async def search(self, query: str, limit: int) -> SearchResult: ...


class _ProxyProvider:
    source: TrackSource
    path: str
    enabled = True

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _fetch(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.get(self.path, params=params)
        except httpx.HTTPError as exc:
            raise SearchProviderError(
                self.source, f"{self.source} search request failed: {exc}"
            ) from exc
        if not response.is_success:
            raise SearchProviderError(
                self.source,
                f"{self.source} search returned HTTP {response.status_code}.",
                details={"status": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise SearchProviderError(
                self.source, f"{self.source} search returned invalid JSON."
            ) from exc
        if not isinstance(payload, dict):
            raise SearchProviderError(
                self.source, f"{self.source} search returned a non-object body."
            )
        return payload


class SpotifySearchProvider(_ProxyProvider):
    source: TrackSource = "spotify"
    path = "/search/spotify"

    async def search(self, query: str, limit: int) -> SearchResult:
        payload = await self._fetch({"query": query, "limit": limit})
        return map_spotify_payload(payload)


class JamendoSearchProvider(_ProxyProvider):
    source: TrackSource = "jamendo"
    path = "/search/jamendo"

    async def search(self, query: str, limit: int) -> SearchResult:
        payload = await self._fetch({"type": "tracks", "query": query, "limit": limit})
        return SearchResult(tracks=map_jamendo_payload(payload))


class YouTubeSearchProvider(_ProxyProvider):
    source: TrackSource = "youtube"
    path = "/search/youtube"

    async def search(self, query: str, limit: int) -> SearchResult:
        payload = await self._fetch({"query": query, "limit": limit})
        return SearchResult(tracks=map_youtube_payload(payload))


class SoundCloudSearchProvider:
    """SoundCloud no longer issues API credentials; the source stays disabled."""

    source: TrackSource = "soundcloud"
    enabled = False

    async def search(self, query: str, limit: int) -> SearchResult:
        logger.debug("SoundCloud search disabled; skipping %r.", query)
        return SearchResult()


class AggregatedSearch:
    """Concurrent fan-out over every enabled provider."""

    def __init__(
        self,
        proxy_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        providers: list[SearchProvider] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=proxy_url, timeout=SEARCH_TIMEOUT_S
        )
        self._rng = rng or random.Random()
        if providers is None:
            providers = [
                SpotifySearchProvider(self._client),
                JamendoSearchProvider(self._client),
                YouTubeSearchProvider(self._client),
                SoundCloudSearchProvider(),
            ]
        self._providers = providers

    @property
    def providers(self) -> list[SearchProvider]:
        return list(self._providers)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def search(self, query: str, limit: int = 20) -> SearchResult:
        query = query.strip()
        if not query:
            return SearchResult()
        providers = [p for p in self._providers if p.enabled]
        results = await asyncio.gather(
            *(provider.search(query, limit) for provider in providers),
            return_exceptions=True,
        )
        tracks: list[Track] = []
        artists: list[Artist] = []
        albums: list[Album] = []
        failed: list[str] = []
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                self._log_failure(provider.source, result)
                failed.append(provider.source)
                continue
            tracks.extend(result.tracks)
            artists.extend(result.artists)
            albums.extend(result.albums)
        logger.info(
            "Search %r: %d tracks, %d artists, %d albums (%d sources failed)",
            query,
            len(tracks),
            len(artists),
            len(albums),
            len(failed),
        )
        return SearchResult(
            tracks=tuple(tracks),
            artists=tuple(artists),
            albums=tuple(albums),
            failed_sources=tuple(failed),
        )

    async def trending(self, limit: int = 50) -> list[Track]:
        """Seed-query every source, mix in demo tracks, and shuffle."""
        per_source = max(1, limit // 3)
        seeds = {
            "spotify": self._rng.choice(TRENDING_SPOTIFY_SEEDS),
            "jamendo": TRENDING_JAMENDO_SEED,
            "youtube": TRENDING_YOUTUBE_SEED,
        }
        providers = [p for p in self._providers if p.enabled and p.source in seeds]
        results = await asyncio.gather(
            *(p.search(seeds[p.source], per_source) for p in providers),
            return_exceptions=True,
        )
        found: list[Track] = []
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                self._log_failure(provider.source, result)
                continue
            found.extend(result.tracks)
        if not found:
            logger.info("No trending tracks from sources; using demo catalog.")
            return demo_tracks(limit, rng=self._rng)
        demo_count = min(10, max(5, limit - len(found)))
        mixed = found + demo_tracks(demo_count, rng=self._rng)
        self._rng.shuffle(mixed)
        return mixed[:limit]

    async def get_track(self, track_id: str) -> Track | None:
        """Resolve `source:nativeId` by searching that source for the id."""
        source, _sep, native = track_id.partition(":")
        for provider in self._providers:
            if provider.source != source or not provider.enabled:
                continue
            try:
                result = await provider.search(native, 1)
            except SearchProviderError as exc:
                self._log_failure(provider.source, exc)
                return None
            return result.tracks[0] if result.tracks else None
        return None

    @staticmethod
    def _log_failure(source: str, exc: BaseException) -> None:
        logger.warning("%s search failed: %s", source, exc)

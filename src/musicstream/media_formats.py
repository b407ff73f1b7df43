"""URL and media format helpers shared by search ingestion and playback."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from urllib.parse import urlparse

AUDIO_EXTENSIONS = frozenset(
    {
        ".aac",
        ".flac",
        ".m4a",
        ".mp3",
        ".oga",
        ".ogg",
        ".opus",
        ".wav",
        ".webm",
        ".wma",
    }
)
"""Recognized audio suffixes the VLC stream engine is expected to open."""

STREAM_HOST_SUFFIXES = (
    "scdn.co",
    "storage.jamendo.com",
    "storage-new.newjamendo.com",
    "mp3d.jamendo.com",
    "mp3l.jamendo.com",
)
"""Hosts that serve raw audio (preview CDN, Creative Commons storage)."""

_STREAM_PATH_MARKERS = ("/stream", "/audio", "/media", "mp3-preview", "/download/track")
_NEVER_AUDIO_HOSTS = ("youtube.com", "youtu.be", "open.spotify.com")
_YOUTUBE_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
_YOUTUBE_URL_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#]+)"),
    re.compile(r"youtube\.com/v/([^&\n?#]+)"),
    re.compile(r"youtube\.com/watch\?.*v=([^&\n?#]+)"),
)
_SPOTIFY_TRACK_URL = re.compile(r"spotify\.com/track/([A-Za-z0-9]+)")


def _host_matches(host: str, suffixes: tuple[str, ...]) -> bool:
    return any(host == suffix or host.endswith(f".{suffix}") for suffix in suffixes)


def is_http_url(url: str | None) -> bool:
    """Return whether value is an absolute http(s) URL."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def is_direct_audio_url(url: str | None) -> bool:
    """Return whether the URL points at fetchable audio rather than a web page."""
    if not url:
        return False
    parsed = urlparse(url)
    if parsed.scheme in {"", "file"}:
        path = parsed.path if parsed.scheme == "file" else url
        return PurePosixPath(path).suffix.lower() in AUDIO_EXTENSIONS
    if not is_http_url(url):
        return False
    host = (parsed.hostname or "").lower()
    if _host_matches(host, _NEVER_AUDIO_HOSTS):
        return False
    if PurePosixPath(parsed.path).suffix.lower() in AUDIO_EXTENSIONS:
        return True
    if _host_matches(host, STREAM_HOST_SUFFIXES):
        return True
    path = parsed.path.lower()
    return any(marker in path for marker in _STREAM_PATH_MARKERS)


def is_web_url(url: str | None) -> bool:
    """Return whether the URL is a browsable page (open-in-app link, video page)."""
    return is_http_url(url) and not is_direct_audio_url(url)


def extract_youtube_video_id(url: str) -> str | None:
    """Return the video id from a YouTube URL or a bare 11-character id."""
    if _YOUTUBE_VIDEO_ID.match(url):
        return url
    for pattern in _YOUTUBE_URL_PATTERNS:
        match = pattern.search(url)
        if match and match.group(1):
            return match.group(1)
    return None


def youtube_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def extract_spotify_track_id(url: str) -> str | None:
    """Return the track id from an open.spotify.com track URL."""
    match = _SPOTIFY_TRACK_URL.search(url)
    return match.group(1) if match else None

"""Search routes forwarding to Spotify, YouTube, and Jamendo."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from musicstream.runtime_config import parse_limit

from ..upstream import settings_of, upstream_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_SEARCH_URL = "https://api.spotify.com/v1/search"
YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
JAMENDO_BASE_URL = "https://api.jamendo.com/v3.0"
JAMENDO_TYPES = ("tracks", "artists", "albums")


def _upstream_failure(exc: Exception, default: str) -> tuple[int, str]:
    """Return (status, message) describing an upstream failure."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        message = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                message = error.get("message")
            elif isinstance(body.get("message"), str):
                message = body["message"]
        return status, str(message or default)
    return 500, str(exc) or default


def _spotify_empty(error: dict[str, Any]) -> dict[str, Any]:
    return {
        "tracks": {"items": []},
        "artists": {"items": []},
        "albums": {"items": []},
        "error": error,
    }


def _youtube_empty(error: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "items": [],
        "pageInfo": {"totalResults": 0, "resultsPerPage": 0},
        "kind": "youtube#searchListResponse",
    }
    if error is not None:
        body["error"] = error
    return body


def _jamendo_empty(status: str, code: int, message: str) -> dict[str, Any]:
    return {
        "results": [],
        "headers": {"status": status, "code": code, "message": message},
    }


@router.get("/spotify")
async def search_spotify(
    request: Request, query: str = "", limit: str = "20"
) -> dict[str, Any]:
    settings = settings_of(request)
    if not settings.has_spotify:
        logger.info("Spotify credentials not configured; returning empty results.")
        return _spotify_empty(
            {
                "status": "credentials_missing",
                "message": "Spotify API credentials not configured",
            }
        )
    try:
        async with upstream_client(request) as client:
            token_response = await client.post(
                SPOTIFY_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(
                    settings.spotify_client_id or "",
                    settings.spotify_client_secret or "",
                ),
            )
            token_response.raise_for_status()
            access_token = token_response.json()["access_token"]
            response = await client.get(
                SPOTIFY_SEARCH_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                params={
                    "q": query,
                    "type": "track,artist,album",
                    "limit": parse_limit(limit),
                    "market": "US",
                    "include_external": "audio",
                },
            )
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        status, message = _upstream_failure(exc, "Spotify API unavailable")
        logger.warning("Spotify search upstream failure (%s): %s", status, message)
        return _spotify_empty({"status": status, "message": message})
    return payload


@router.get("/youtube")
async def search_youtube(
    request: Request, query: str = "", limit: str = "20"
) -> dict[str, Any]:
    api_key = settings_of(request).youtube_api_key
    if not api_key:
        logger.info("YouTube API key not configured; returning empty results.")
        return _youtube_empty()
    try:
        async with upstream_client(request) as client:
            response = await client.get(
                YOUTUBE_SEARCH_URL,
                params={
                    "part": "snippet",
                    "q": f"{query} music",
                    "type": "video",
                    "videoCategoryId": "10",
                    "maxResults": parse_limit(limit),
                    "key": api_key,
                    "relevanceLanguage": "en",
                    "regionCode": "US",
                    "videoEmbeddable": "true",
                    "videoSyndicated": "true",
                },
            )
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        status, message = _upstream_failure(exc, "YouTube API unavailable")
        logger.warning("YouTube search upstream failure (%s): %s", status, message)
        return _youtube_empty({"code": status, "message": message})
    return payload


@router.get("/jamendo", response_model=None)
async def search_jamendo(
    request: Request, type: str = "tracks", query: str = "", limit: str = "20"
) -> dict[str, Any] | JSONResponse:
    client_id = settings_of(request).jamendo_client_id
    if not client_id:
        logger.info("Jamendo client id not configured; returning empty results.")
        return _jamendo_empty(
            "success", 0, "API key not configured - returning empty results"
        )
    if type not in JAMENDO_TYPES:
        return JSONResponse(status_code=400, content={"error": "Invalid type parameter"})
    params: dict[str, Any] = {
        "client_id": client_id,
        "format": "json",
        "limit": parse_limit(limit),
        "search": query or "popular",
    }
    if type == "tracks":
        params.update({"include": "musicinfo", "audioformat": "mp3"})
    try:
        async with upstream_client(request) as client:
            response = await client.get(f"{JAMENDO_BASE_URL}/{type}/", params=params)
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        status, message = _upstream_failure(exc, "Jamendo API unavailable")
        logger.warning("Jamendo search upstream failure (%s): %s", status, message)
        return _jamendo_empty("error", status, message)
    return payload

"""Spotify authorization-code and refresh-token exchange."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from musicstream.runtime_config import DEFAULT_REDIRECT_URI

from ..upstream import settings_of, upstream_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"


class TokenRequest(BaseModel):
    """Body of a token exchange; which fields are needed depends on grant_type."""

    grant_type: str = "authorization_code"
    code: str | None = None
    redirect_uri: str | None = None
    refresh_token: str | None = None


def _error(status: int, message: str, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status, content=content)


@router.post("/spotify/token", response_model=None)
async def spotify_token(request: Request, body: TokenRequest) -> Any:
    settings = settings_of(request)
    if not settings.has_spotify:
        return _error(500, "Spotify credentials not configured")
    if body.grant_type == "authorization_code":
        if not body.code:
            return _error(400, "Authorization code is required")
        form = {
            "grant_type": "authorization_code",
            "code": body.code,
            "redirect_uri": body.redirect_uri or DEFAULT_REDIRECT_URI,
        }
        failure = "Failed to exchange authorization code"
    elif body.grant_type == "refresh_token":
        if not body.refresh_token:
            return _error(400, "Refresh token is required")
        form = {"grant_type": "refresh_token", "refresh_token": body.refresh_token}
        failure = "Failed to refresh access token"
    else:
        return _error(400, f"Unsupported grant_type: {body.grant_type}")

    try:
        async with upstream_client(request) as client:
            response = await client.post(
                SPOTIFY_TOKEN_URL,
                data=form,
                auth=(
                    settings.spotify_client_id or "",
                    settings.spotify_client_secret or "",
                ),
            )
    except httpx.HTTPError as exc:
        logger.warning("Spotify token exchange failed: %s", exc)
        return _error(500, failure, str(exc))
    try:
        payload = response.json()
    except ValueError:
        payload = response.text
    if not response.is_success:
        logger.warning("Spotify token endpoint returned %s", response.status_code)
        return _error(response.status_code, failure, payload)
    return payload

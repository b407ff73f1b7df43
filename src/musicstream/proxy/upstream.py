"""Request-scoped access to proxy settings and the upstream HTTP client."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import Request

from musicstream.runtime_config import ProxySettings

UPSTREAM_TIMEOUT_S = 8.0


@asynccontextmanager
async def upstream_client(request: Request) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an HTTP client for provider APIs bound to the app's transport."""
    async with httpx.AsyncClient(
        timeout=UPSTREAM_TIMEOUT_S, transport=request.app.state.transport
    ) as client:
        yield client


def settings_of(request: Request) -> ProxySettings:
    settings: ProxySettings = request.app.state.settings
    return settings

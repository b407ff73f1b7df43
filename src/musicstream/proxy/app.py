"""FastAPI application hiding provider credentials from the playback client.

Search routes always answer 200 with an empty provider-shaped envelope when
credentials are missing or the upstream call fails, so clients degrade to
"no results" instead of erroring.
"""

from __future__ import annotations

import logging

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from musicstream.runtime_config import ProxySettings

from .routers import auth, search

logger = logging.getLogger(__name__)


def create_app(
    settings: ProxySettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the proxy app; `transport` replaces real upstream HTTP in tests."""
    settings = settings or ProxySettings.from_env()
    app = FastAPI(title="musicstream proxy")
    app.state.settings = settings
    app.state.transport = transport
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.include_router(search.router)
    app.include_router(auth.router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    missing = settings.missing_credentials()
    if missing:
        logger.warning(
            "Proxy starting without %s; affected sources return empty results.",
            ", ".join(missing),
        )
    return app


def serve(settings: ProxySettings, *, host: str, port: int) -> None:
    """Run the proxy with uvicorn; logging stays under the app's handlers."""
    logger.info("Starting proxy on http://%s:%d", host, port)
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)

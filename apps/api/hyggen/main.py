"""FastAPI application for the shared room server."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from .core.config import settings
from .routers import room
from .services.gateway import RoomGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the room gateway from settings for the lifetime of the app."""

    app.state.gateway = RoomGateway.from_settings(settings)
    logger.info("Room ready with %d seats", len(app.state.gateway.seats.layout.seats))
    yield


app = FastAPI(title="Hyggen Room Server", version="0.1.0", lifespan=lifespan)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(room.router)


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)


if settings.static_dir:
    # Mounted last so API and WebSocket routes take precedence.
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="client")

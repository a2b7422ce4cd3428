"""Replay HTTP routes.

Exposes the engine's read accessors and control surface to remote
displays. Blocking source reads run in a worker thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from replay.engine import ReplayEngine
from replay.errors import ControlResult, ReplayErrorCode
from replay.timer import ReplayTimer

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    ReplayErrorCode.UNKNOWN_TRACK: 404,
    ReplayErrorCode.DUPLICATE_NAME: 409,
    ReplayErrorCode.INVALID_SCALE: 422,
    ReplayErrorCode.OPEN_FAILED: 422,
    ReplayErrorCode.SOURCE_UNREADABLE: 422,
    ReplayErrorCode.EMPTY_SOURCE: 422,
}


class TrackRequest(BaseModel):
    """Request to open a flight log."""

    path: str = Field(..., min_length=1, description="Flight log identifier")
    name: str | None = Field(None, description="Track label (defaults to the log's registration)")


class TimeScaleRequest(BaseModel):
    """Request to change playback speed."""

    time_scale: float = Field(..., description="Playback speed multiplier, 0 pauses")


class FastForwardRequest(BaseModel):
    """Request to skip ahead."""

    delta_s: float = Field(..., description="Virtual seconds to skip")


def _raise_for(result: ControlResult) -> dict:
    """Return the result payload or raise the matching HTTP error."""
    if result.ok:
        return result.to_dict()
    raise HTTPException(status_code=ERROR_STATUS.get(result.error, 400), detail=result.to_dict())


def register_replay_routes(app: FastAPI, engine: ReplayEngine) -> None:
    """Register replay read and control routes."""

    @app.get("/api/replay")
    async def get_replay(include_trace: bool = False) -> dict:
        """Latest snapshot of the engine."""
        snapshot = engine.snapshot()
        exclude = None if include_trace else {"tracks": {"__all__": {"trace"}}}
        return snapshot.model_dump(mode="json", exclude=exclude)

    @app.get("/api/replay/tracks/{name}")
    async def get_track(name: str) -> dict:
        """Current sample and trail of one track."""
        view = engine.snapshot().find(name)
        if view is None:
            raise HTTPException(status_code=404, detail=f"Track not found: {name}")
        return view.model_dump(mode="json")

    @app.post("/api/replay/start")
    async def start_replay(request: TrackRequest) -> dict:
        """Start a replay with the given log as reference track."""
        result = await asyncio.to_thread(engine.start, request.path, request.name)
        return _raise_for(result)

    @app.post("/api/replay/tracks")
    async def add_track(request: TrackRequest) -> dict:
        """Add a track at the current virtual time."""
        result = await asyncio.to_thread(engine.add_track, request.path, request.name)
        return _raise_for(result)

    @app.delete("/api/replay/tracks/{name}")
    async def remove_track(name: str) -> dict:
        """Remove a track."""
        return _raise_for(engine.remove_track(name))

    @app.post("/api/replay/time-scale")
    async def set_time_scale(request: TimeScaleRequest) -> dict:
        """Change playback speed."""
        return _raise_for(engine.set_time_scale(request.time_scale))

    @app.post("/api/replay/fast-forward")
    async def fast_forward(request: FastForwardRequest) -> dict:
        """Skip ahead without wall-clock pacing."""
        if not engine.fast_forward(request.delta_s):
            raise HTTPException(
                status_code=409,
                detail=f"Cannot fast-forward in state {engine.state.value}",
            )
        return {"ok": True, "target": engine.snapshot().fast_forward_target}

    @app.post("/api/replay/stop")
    async def stop_replay() -> dict:
        """Stop the replay and discard every track."""
        engine.stop()
        return {"ok": True}


def create_app(engine: ReplayEngine, tick_interval_s: float | None = None) -> FastAPI:
    """Create a FastAPI app serving ``engine``.

    Args:
        engine: Engine to expose.
        tick_interval_s: When set, a ``ReplayTimer`` drives the engine for
            the lifetime of the app.

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        timer = None
        if tick_interval_s is not None:
            timer = ReplayTimer(engine, interval_s=tick_interval_s)
            timer.start()
        logger.info("replay_api_started", ticking=timer is not None)
        try:
            yield
        finally:
            if timer is not None:
                await timer.stop()
            engine.stop()
            logger.info("replay_api_stopped")

    app = FastAPI(
        title="Multi-track Replay",
        description="Synchronized replay of recorded flight tracks",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_replay_routes(app, engine)
    return app

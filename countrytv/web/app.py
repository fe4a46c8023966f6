"""
app — FastAPI application factory with scheduler lifespan.
"""
from __future__ import annotations
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Config, load_config
from ..scheduler import PlaylistMaintenance

log = structlog.get_logger()


def create_app(
    cfg: Config | None = None,
    maintenance: PlaylistMaintenance | None = None,
    start_jobs: bool = True,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = cfg or load_config()
        mt = maintenance or PlaylistMaintenance(config)
        app.state.config = config
        app.state.maintenance = mt
        if start_jobs:
            mt.start_background()
        log.info("web_started", host=config.web_host, port=config.web_port,
                 playlist=config.playlist_path)
        yield
        mt.updater.stop()
        mt.shutdown()
        log.info("web_stopped")

    app = FastAPI(title="countrytv", lifespan=lifespan)
    # The player UI is served from a different origin
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET", "POST"])

    from .routers import system, playlist
    app.include_router(system.router)
    app.include_router(playlist.router)

    # JSON error handler for API routes
    @app.exception_handler(Exception)
    async def _api_error_handler(request: Request, exc: Exception):
        log.error("api_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    return app

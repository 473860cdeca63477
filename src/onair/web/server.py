"""
Web server for the OnAir broadcast channel.

Provides the FastAPI application (health, now-playing, queue) and a uvicorn
entry point. Optionally runs the periodic advancement daemon for the life of
the app; without it, reads advance the schedule opportunistically.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..infra.exceptions import StoreUnavailableError
from ..infra.logging import configure_logging, get_logger
from ..infra.settings import Settings, settings as default_settings
from ..runtime.broadcast_runtime import BroadcastRuntime, build_runtime
from ..runtime.schedule_types import WaitingReason
from ..usecases.now_playing import waiting_body
from .api import broadcast

logger = get_logger(__name__)

RETRY_AFTER_SECONDS = 2


def create_app(
    runtime: BroadcastRuntime | None = None,
    *,
    app_settings: Settings | None = None,
    run_daemon: bool = False,
) -> FastAPI:
    """Build the FastAPI app around a broadcast runtime."""
    cfg = app_settings or default_settings
    runtime = runtime or build_runtime(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        daemon = runtime.daemon() if run_daemon else None
        if daemon is not None:
            daemon.start()
        try:
            yield
        finally:
            if daemon is not None:
                daemon.stop()

    app = FastAPI(title="OnAir", lifespan=lifespan)
    app.state.runtime = runtime
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreUnavailableError)
    async def _store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("store_unavailable", store=exc.store, path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content=waiting_body(WaitingReason.UNAVAILABLE),
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )

    @app.get("/health")
    def health() -> dict[str, object]:
        """Liveness plus server time, for client clock-offset estimation."""
        return {"status": "ok", "timestamp": runtime.clock.now_ms()}

    app.include_router(broadcast.router)
    return app


def run_server(host: str | None = None, port: int | None = None, *, run_daemon: bool = True) -> None:
    configure_logging()
    app = create_app(run_daemon=run_daemon)
    uvicorn.run(
        app,
        host=host or default_settings.http_host,
        port=port or default_settings.http_port,
        log_config=None,
    )

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nt_manager.application import get_runtime
from nt_manager.routes import items, notifications, timeline
from nt_manager.workers.ticker import StatusTicker


def _configure_logging() -> None:
    level = (os.getenv("NT_MANAGER_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime = get_runtime()
    runtime.start()
    ticker = StatusTicker(runtime.board, interval=runtime.config.tick_seconds, timeline=runtime.timeline)
    ticker.start()
    app.state.ticker = ticker
    try:
        yield
    finally:
        await ticker.stop()
        runtime.stop()


def create_app() -> FastAPI:
    _configure_logging()
    app = FastAPI(title="NT Manager Delay Tracking API", version="0.1.0", lifespan=lifespan)

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(timeline.router, prefix="/api")
    app.include_router(items.router, prefix="/api")
    app.include_router(notifications.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "NT Manager Delay Tracking API",
                "docs": "/docs",
                "health": "/api/timeline/stats",
            }
        )

    return app


app = create_app()

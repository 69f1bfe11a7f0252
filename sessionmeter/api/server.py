"""FastAPI server exposing the latest usage snapshot to local status bars."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sessionmeter.api.routes import router
from sessionmeter.config import settings
from sessionmeter.monitor import UsageMonitor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the usage monitor unless a test already installed one."""
    monitor = getattr(app.state, "monitor", None)
    owns_monitor = monitor is None
    if owns_monitor:
        monitor = UsageMonitor.from_settings(settings)
        app.state.monitor = monitor
        try:
            await monitor.start()
        except Exception:
            logger.exception("Usage monitor failed to start")

    yield

    if owns_monitor:
        await monitor.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="sessionmeter",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")
    return app


app = create_app()

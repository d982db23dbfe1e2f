"""FastAPI server for the database diagnostics engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dbdiag.api.check_routes import check_router
from dbdiag.engine import DiagnosticsEngine, EngineConfig

logger = logging.getLogger(__name__)


def create_app(
    engine_config: EngineConfig | None = None,
    engine: DiagnosticsEngine | None = None,
) -> FastAPI:
    """Build the app. Pass ``engine`` to skip building one from config."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize shared resources on startup."""
        owned = engine is None
        if owned:
            config = engine_config
            if config is None:
                from dbdiag.config import settings
                config = settings.engine_config()
            app.state.engine = DiagnosticsEngine.from_config(config)
        else:
            app.state.engine = engine
        logger.info("Diagnostics engine started")

        yield

        # Shutdown
        if owned:
            app.state.engine.close()
        logger.info("Diagnostics engine stopped")

    app = FastAPI(
        title="dbdiag - Database Diagnostics",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    if engine is not None:
        app.state.engine = engine

    app.include_router(check_router, prefix="/api")

    return app

"""
Application entry point.

    uvicorn engagement.main:app

The engine talks to SQL when DATABASE_URL is set, otherwise to the in-memory
store.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException

from engagement import __version__
from engagement.api import health, intelligence
from engagement.core.config import settings, validate_config
from engagement.core.database import build_engine, create_all_tables
from engagement.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from engagement.core.logging import configure_logging
from engagement.engine import EngagementEngine
from engagement.features.gateway.memory import InMemoryActivityStore
from engagement.features.gateway.sql import SqlActivityStore


def build_gateway():
    """SQL store when a database is configured, in-memory store otherwise."""
    if settings.DATABASE_URL:
        db_engine = build_engine(settings.DATABASE_URL)
        create_all_tables(db_engine)
        return SqlActivityStore(db_engine)
    return InMemoryActivityStore()


def create_app(engine: Optional[EngagementEngine] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        engine: Pre-built engine (tests); built from settings when omitted
    """
    configure_logging(settings.ENV)
    validate_config(strict=settings.CONFIG_STRICT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger("engagement")
        if getattr(app.state, "engine", None) is None:
            app.state.engine = EngagementEngine(build_gateway())
        logger.info("Starting engagement intelligence engine...")
        try:
            yield
        finally:
            await app.state.engine.shutdown()
            logger.info("Stopping engagement intelligence engine...")

    app = FastAPI(title="Engagement Intelligence", version=__version__, lifespan=lifespan)
    app.state.engine = engine

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(intelligence.router)
    app.include_router(health.router)
    return app


app = create_app()

"""
Demo Entity API Server
Reactive CRUD over a single table: asyncpg store, FastAPI controller
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reactive_demo.api.routes import demo_entity, health
from reactive_demo.api.routes.demo_entity import DemoEntityController
from reactive_demo.config.settings import Settings
from reactive_demo.database.connection import close_database, init_database
from reactive_demo.database.migrations import apply_migrations
from reactive_demo.services.demo_entity_repository import (
    DemoEntityRepository,
    InMemoryDemoEntityRepository,
    PostgresDemoEntityRepository,
)
from reactive_demo.utils.error_handling import setup_error_handling

logger = logging.getLogger(__name__)


async def build_repository(settings: Settings) -> DemoEntityRepository:
    """Create the repository for the configured backend, migrating the schema first"""
    if settings.repository_backend == "memory":
        logger.info("Using in-memory repository, data will not survive a restart")
        return InMemoryDemoEntityRepository()

    pool = await init_database(settings)
    if settings.run_migrations:
        try:
            async with pool.acquire() as conn:
                await apply_migrations(conn)
        except Exception:
            await close_database()
            raise

    return PostgresDemoEntityRepository(pool, prefetch=settings.stream_prefetch)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Explicit settings, read from the environment at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        app_settings = settings or Settings.from_env()
        errors = app_settings.validate()
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        app.state.settings = app_settings
        repository = await build_repository(app_settings)
        app.state.demo_entity_controller = DemoEntityController(repository)
        logger.info(f"Demo entity service started ({app_settings.repository_backend} backend)")
        try:
            yield
        finally:
            await close_database()

    app = FastAPI(
        title="Demo Entity Service",
        description="Non-blocking CRUD API over the demo_entity table",
        version="1.0.0",
        lifespan=lifespan
    )

    origins = settings.allowed_origins if settings else Settings.from_env().allowed_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    setup_error_handling(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(demo_entity.router, prefix="/demo_entity", tags=["Demo Entity"])

    return app


# FastAPI app instance is exported for use by uvicorn
app = create_app()

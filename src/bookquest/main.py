"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from bookquest.auth.router import router as auth_router
from bookquest.books.router import router as books_router
from bookquest.config import get_settings
from bookquest.dashboard.router import router as dashboard_router
from bookquest.database import close_db, get_session, init_db
from bookquest.gamification.router import router as gamification_router
from bookquest.gamification.seed import seed_badges, seed_categories
from bookquest.health.router import router as health_router
from bookquest.middleware import setup_middleware
from bookquest.redis_client import close_redis, init_redis
from bookquest.users.router import router as users_router

logger = logging.getLogger(__name__)


async def seed_catalog() -> None:
    """Seed badge definitions and categories (idempotent)."""
    async for db in get_session():
        await seed_badges(db)
        await seed_categories(db)
        break


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    if settings.seed_catalog_on_startup:
        try:
            await seed_catalog()
        except SQLAlchemyError:
            logger.warning("Catalog seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="BookQuest API",
        description="Reading tracker that rewards finished books with points, levels and badges",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(books_router)
    app.include_router(dashboard_router)
    app.include_router(gamification_router)

    return app


app = create_app()

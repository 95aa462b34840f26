"""watchRebel: FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from watchrebel.api import (
    admin, feed, health, lists, media, messages, notifications, progress, ratings, users, wall, watchlist,
)
from watchrebel.clients.base import IMediaCatalog, INotificationChannel
from watchrebel.clients.telegram import NullChannel, TelegramNotifier
from watchrebel.clients.throttle import RequestThrottle
from watchrebel.clients.tmdb import TmdbClient
from watchrebel.config import Settings, settings as default_settings
from watchrebel.database import create_engine, create_session_factory, init_db
from watchrebel.errors import AppError, InternalError
from watchrebel.services.locks import KeyedLocks
from watchrebel.services.notifier import FanoutNotifier
from watchrebel.services.realtime import ConnectionRegistry

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def configure_state(
    app: FastAPI,
    settings: Settings,
    engine: AsyncEngine,
    catalog: Optional[IMediaCatalog] = None,
    channel: Optional[INotificationChannel] = None,
):
    """Wire the shared collaborators every request handler reaches through ``app.state``."""
    session_factory = create_session_factory(engine)

    if catalog is None and settings.has_tmdb:
        throttle = RequestThrottle(settings.tmdb_min_request_interval_ms / 1000)
        catalog = TmdbClient(
            settings.tmdb_api_key,
            throttle,
            language=settings.tmdb_language,
            base_url=settings.tmdb_base_url,
        )
    if channel is None:
        channel = TelegramNotifier(settings.telegram_bot_token) if settings.has_telegram else NullChannel()

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.locks = KeyedLocks()
    app.state.catalog = catalog
    app.state.notifier = FanoutNotifier(session_factory, channel, app_url=settings.app_url)
    app.state.connections = ConnectionRegistry()


def create_app(settings: Settings = default_settings) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        configure_logging(settings.log_level)
        engine = create_engine(settings.database_url, echo=settings.debug)
        await init_db(engine)
        configure_state(app, settings, engine)
        if not settings.has_tmdb:
            logger.warning("TMDB credentials not configured; titles fall back to placeholders")
        if not settings.has_telegram:
            logger.warning("Telegram bot token not configured; push delivery disabled")
        logger.info(f"{settings.app_name} started")
        yield
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        description="Social network for tracking and discussing movies and TV shows",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",     # Vite dev server
            settings.app_url,
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error rendering ──────────────────────────────────────────

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"error": "Некорректные данные запроса", "code": "VALIDATION_ERROR", "details": details},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
        error = InternalError("Ошибка базы данных")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    # ── Mount routers ────────────────────────────────────────────
    app.include_router(health.router,        prefix="/api/v1", tags=["system"])
    app.include_router(users.router,         prefix="/api/v1", tags=["users"])
    app.include_router(lists.router,         prefix="/api/v1", tags=["lists"])
    app.include_router(watchlist.router,     prefix="/api/v1", tags=["watchlist"])
    app.include_router(ratings.router,       prefix="/api/v1", tags=["ratings"])
    app.include_router(progress.router,      prefix="/api/v1", tags=["progress"])
    app.include_router(media.router,         prefix="/api/v1", tags=["media"])
    app.include_router(wall.router,          prefix="/api/v1", tags=["wall"])
    app.include_router(feed.router,          prefix="/api/v1", tags=["feed"])
    app.include_router(notifications.router, prefix="/api/v1", tags=["notifications"])
    app.include_router(messages.router,      prefix="/api/v1", tags=["messages"])
    app.include_router(admin.router,         prefix="/api/v1", tags=["admin"])
    app.include_router(messages.ws_router)

    return app


app = create_app()

# qr_attendance/__init__.py
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from .core.config import settings, get_logging_config
from .core.database import AsyncSessionLocal, build_session_factory, close_db, init_db
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.redis import close_redis, init_redis
from .middleware import RequestIDMiddleware
from .routes import attendance_router, classes_router, feed_router, sessions_router
from .services import (
    CodePayloadCodec,
    Notifier,
    PresenceFeed,
    build_notifier,
    build_presence_feed,
)
from .storage import InMemoryAttendanceStore
from .utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)


def create_app(
    storage_backend: Optional[str] = None,
    engine: Optional[AsyncEngine] = None,
    presence_feed: Optional[PresenceFeed] = None,
    notifier: Optional[Notifier] = None,
    clock: Optional[Clock] = None
) -> FastAPI:
    log_config = get_logging_config()
    configure_logging(
        level=log_config["log_level"],
        log_dir=log_config["log_dir"],
        json_console=log_config["log_json"]
    )

    app = FastAPI(
        title=settings.APP_NAME,
        description="Session-scoped QR code attendance with live presence updates",
        version=settings.VERSION,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
    )

    # Shared state read by the dependency providers
    app.state.storage_backend = storage_backend or settings.STORAGE_BACKEND
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine) if engine else AsyncSessionLocal
    app.state.memory_store = InMemoryAttendanceStore()
    app.state.codec = CodePayloadCodec()
    app.state.feed = presence_feed
    app.state.notifier = notifier or build_notifier()
    app.state.clock = clock or utcnow
    app.state.teacher_token = settings.TEACHER_API_TOKEN

    # Middleware
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(attendance_router, prefix="/api/v1/attendance", tags=["Attendance"])
    app.include_router(classes_router, prefix="/api/v1/classes", tags=["Classes"])
    app.include_router(sessions_router, prefix="/api/v1", tags=["Sessions"])
    app.include_router(feed_router, prefix="/api/v1", tags=["Presence"])

    @app.on_event("startup")
    async def startup_event():
        if app.state.storage_backend == "sql":
            await init_db(app.state.engine)
        if app.state.feed is None:
            backend = settings.PRESENCE_BACKEND
            redis = await init_redis() if backend == "redis" else None
            app.state.feed = build_presence_feed(backend, redis)
        logger.info(
            f"Application startup completed (storage={app.state.storage_backend}, "
            f"presence={type(app.state.feed).__name__})"
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.feed is not None:
            await app.state.feed.close()
        await close_redis()
        if app.state.engine is None:
            await close_db()
        logger.info("Application shutdown completed")

    return app

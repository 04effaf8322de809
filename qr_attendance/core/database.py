# qr_attendance/core/database.py
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from qr_attendance.core.config import settings
from qr_attendance.models.base import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite gets foreign keys switched on"""
    url = make_url(database_url)
    options = {"echo": echo, "pool_pre_ping": True}

    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=20,              # Maximum number of connections in the pool
            max_overflow=10,           # Connections allowed beyond pool_size
            pool_timeout=30,           # Seconds to wait before timeout on checkout
            pool_recycle=1800,         # Recycle connections after 30 minutes
        )

    engine = create_async_engine(database_url, **options)

    if url.get_backend_name() == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,    # Don't expire objects after commit
        autoflush=False            # Explicit flush management
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
AsyncSessionLocal = build_session_factory(engine)


async def init_db(bind: AsyncEngine = None) -> None:
    """Create all tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections"""
    await engine.dispose()


# Register all models with the metadata
import qr_attendance.models  # noqa: E402,F401

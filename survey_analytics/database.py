"""
Database engine and sessions.

Request handlers get a session per request from ``get_db``. Background jobs
outlive the request, so they receive the session factory (``get_session_factory``)
and open their own sessions.

The connection string is never logged and SQL echo is off in production.
"""

import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from survey_analytics.config import settings

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = 500
SERVER_POOL = {"pool_size": 20, "max_overflow": 10, "pool_recycle": 3600, "pool_pre_ping": True}


class Base(DeclarativeBase):
    pass


def _log_slow_queries(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_started"] = time.monotonic()

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def report(conn, cursor, statement, parameters, context, executemany):
        started = conn.info.pop("query_started", None)
        if started is None:
            return
        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms >= SLOW_QUERY_THRESHOLD_MS:
            logger.warning(f"Slow query ({elapsed_ms:.0f}ms): {statement[:200]}")


def build_engine(database_url: str) -> AsyncEngine:
    """Engine with pooling for server databases; SQLite keeps the driver defaults."""
    options = {} if database_url.startswith("sqlite") else SERVER_POOL
    engine = create_async_engine(database_url, echo=settings.sqlalchemy_echo, **options)
    _log_slow_queries(engine)
    return engine


engine = build_engine(settings.DATABASE_URL)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    """Session for one request. Handlers commit what they change."""
    async with async_session_maker() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    return async_session_maker


async def init_db():
    """Create missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

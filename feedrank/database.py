"""
Async SQLAlchemy engine + session factory for the content store.

Production runs against TiDB (MySQL wire protocol, aiomysql driver). The
feed queries only use constructs that TiDB, PostgreSQL and SQLite share,
so any SQLAlchemy async URL works; SQLite additionally needs an ``ln``
function registered on each connection.
The engine is created once at startup and reused across all requests.
"""
import logging
import math

from sqlalchemy import event
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from feedrank.config import settings

logger = logging.getLogger(__name__)


def _sqlite_ln(value):
    if value is None or value <= 0:
        return None
    return math.log(value)


def register_sqlite_functions(engine: AsyncEngine) -> None:
    """Expose ``ln()`` on SQLite connections (not every build ships math functions)."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.create_function("ln", 1, _sqlite_ln)


def build_engine(url: str, **kwargs) -> AsyncEngine:
    if make_url(url).get_backend_name() != "sqlite":
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 20)
        kwargs.setdefault("max_overflow", 10)
    engine = create_async_engine(url, echo=False, **kwargs)
    register_sqlite_functions(engine)
    return engine


engine = build_engine(settings.sqlalchemy_url)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def get_db():
    """FastAPI dependency that yields an async DB session.

    Feed reads never write, so nothing is committed; failures roll back and
    propagate to the caller unchanged.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

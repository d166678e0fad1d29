import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import Executable

from .config import settings
from .core.exceptions import StoreError, UniqueViolationError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# Base class for models
Base = declarative_base()


# Enable WAL mode and foreign keys for SQLite
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine, applying the SQLite pragmas when needed."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
    engine = create_async_engine(url, pool_pre_ping=True, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", set_sqlite_pragma)
    return engine


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401  (registers tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class QueryExecutor(Protocol):
    """Runs statements against the authoritative store.

    Rows come back as plain column-name-keyed dicts. The executor knows
    nothing about owners; scoping is the caller's job.
    """

    async def execute(self, statement: Executable, params: Optional[Mapping[str, Any]] = None) -> List[Row]:
        ...

    def transaction(self) -> AsyncContextManager["QueryExecutor"]:
        ...


async def _run(conn: AsyncConnection, statement: Executable, params: Optional[Mapping[str, Any]]) -> List[Row]:
    try:
        if params:
            result = await conn.execute(statement, dict(params))
        else:
            result = await conn.execute(statement)
    except IntegrityError as e:
        detail = str(e.orig) if e.orig is not None else str(e)
        logger.warning("Integrity error: %s", detail)
        if "unique" in detail.lower():
            raise UniqueViolationError(detail) from e
        raise StoreError(detail) from e
    except SQLAlchemyError as e:
        logger.error("Query failed: %s", e)
        raise StoreError("Query failed") from e

    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings().all()]


class _ConnectionExecutor:
    """Executor bound to one open transaction."""

    def __init__(self, conn: AsyncConnection):
        self._conn = conn

    async def execute(self, statement: Executable, params: Optional[Mapping[str, Any]] = None) -> List[Row]:
        return await _run(self._conn, statement, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["_ConnectionExecutor"]:
        # Nested use joins the enclosing transaction
        yield self


class SQLAlchemyExecutor:
    """QueryExecutor over an SQLAlchemy AsyncEngine.

    Each bare ``execute`` runs in its own short transaction;
    ``transaction()`` groups several statements so they commit or roll
    back together.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def execute(self, statement: Executable, params: Optional[Mapping[str, Any]] = None) -> List[Row]:
        async with self.engine.begin() as conn:
            return await _run(conn, statement, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[_ConnectionExecutor]:
        async with self.engine.begin() as conn:
            yield _ConnectionExecutor(conn)


engine = build_engine(settings.DATABASE_URL)

_default_executor = SQLAlchemyExecutor(engine)


def get_executor() -> QueryExecutor:
    """Process-wide executor over the configured database."""
    return _default_executor


def set_executor(executor: QueryExecutor) -> None:
    """Swap the process-wide executor (used by tests and the app factory)."""
    global _default_executor
    _default_executor = executor

"""Database access for the studio store.

A `StudioDatabase` bundles one async engine with its session factory. The
server shares a process-wide instance located by DATA_DIR / DATABASE_URL;
tests build their own against a temporary SQLite file. SQLite connections
run in WAL mode so readers see either the previous or the new set of
section rows while a validation run writes.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .sqlmodels import Base

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = os.path.expanduser("~/.studio-engine")


def get_data_dir() -> Path:
    """Get the data directory, creating it if needed."""
    data_dir = Path(os.environ.get("DATA_DIR", DEFAULT_DATA_DIR))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_url() -> str:
    """DATABASE_URL when set, else a SQLite file in the data directory."""
    return os.environ.get("DATABASE_URL") or f"sqlite+aiosqlite:///{get_data_dir() / 'data.db'}"


def _sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    for pragma in ("journal_mode=WAL", "synchronous=NORMAL", "busy_timeout=5000", "foreign_keys=ON"):
        cursor.execute(f"PRAGMA {pragma}")
    cursor.close()


class StudioDatabase:
    """One engine plus the session factory the repository opens sessions from."""

    def __init__(self, url: str):
        self.url = url
        self.engine = create_async_engine(url, echo=False)
        if url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _sqlite_pragmas)
        self.sessions: async_sessionmaker[AsyncSession] = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


_database: Optional[StudioDatabase] = None


def get_database() -> StudioDatabase:
    global _database
    if _database is None:
        _database = StudioDatabase(get_db_url())
    return _database


async def init_db():
    """Create all tables if they don't exist."""
    database = get_database()
    await database.create_schema()
    logger.info("Database initialized at %s", database.url)


async def close_db():
    global _database
    if _database:
        await _database.dispose()
        _database = None

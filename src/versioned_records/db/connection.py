"""Database connection management."""

import logging
from pathlib import Path

import aiosqlite

from versioned_records.config import get_database_url, get_db_path
from versioned_records.db.backend import Database
from versioned_records.db.sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)

# Seconds a writer waits for another connection's write lock
_BUSY_TIMEOUT = 5.0


async def create_connection(db_path: Path | str | None = None) -> Database:
    """Create and initialize a database connection.

    Dispatches to SQLite or PostgreSQL based on VR_DATABASE_URL.
    For in-memory SQLite databases, pass ":memory:".
    """
    # Explicit ":memory:" always uses SQLite (used by tests)
    if db_path == ":memory:":
        return await _create_sqlite(":memory:")
    url = get_database_url()
    if url and url.startswith("postgresql"):
        return await _create_postgres(url)
    return await _create_sqlite(db_path or get_db_path())


async def _create_sqlite(db_path: Path | str) -> Database:
    """Create a SQLite backend in autocommit mode with the schema applied."""
    db_path = str(db_path)

    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # isolation_level=None: transactions are opened explicitly by SQLiteBackend
    conn = await aiosqlite.connect(db_path, isolation_level=None, timeout=_BUSY_TIMEOUT)
    conn.row_factory = aiosqlite.Row

    # WAL lets readers on other connections proceed while a writer holds the lock
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    logger.debug("SQLite connection opened at %s", db_path)

    db = SQLiteBackend(conn)
    await db.apply_schema()

    return db


async def _create_postgres(url: str) -> Database:
    """Create a PostgreSQL backend with the schema applied."""
    from versioned_records.db.postgres_backend import PostgresBackend

    db = await PostgresBackend.create(url)
    await db.apply_schema()
    return db

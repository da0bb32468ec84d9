"""SQLite implementation of the Database protocol.

Thin wrapper around aiosqlite.Connection with no SQL translation needed
since application code already uses SQLite-flavored SQL. The connection
runs in autocommit mode; ``transaction()`` issues ``BEGIN IMMEDIATE`` so
that writers on other connections wait for the database write lock.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from versioned_records.errors import ConstraintViolation

if TYPE_CHECKING:
    import aiosqlite

    from versioned_records.db.backend import Cursor, Row

logger = logging.getLogger(__name__)


class SQLiteCursor:
    """Cursor protocol over an aiosqlite cursor."""

    def __init__(self, cursor: aiosqlite.Cursor) -> None:
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        """Rows changed by the statement; -1 for queries."""
        rc = self._cursor.rowcount
        return rc if rc is not None else -1

    async def fetchone(self) -> Row | None:
        return await self._cursor.fetchone()

    async def fetchall(self) -> list[Row]:
        return list(await self._cursor.fetchall())


class SQLiteBackend:
    """SQLite implementation of the Database protocol.

    Statements go straight to the aiosqlite connection; integrity errors
    come back as ConstraintViolation.

    One connection holds at most one transaction at a time, so tasks
    sharing the backend take turns through ``_tx_lock``. Statements run
    outside ``transaction()`` by other tasks are not isolated from an open
    transaction on the same connection.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        """Initialize with an aiosqlite connection opened with isolation_level=None."""
        self._conn = conn
        self._tx_lock = asyncio.Lock()
        self._depth: ContextVar[int] = ContextVar(f"sqlite_tx_depth_{id(self)}", default=0)

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Run one statement. IntegrityError becomes ConstraintViolation."""
        try:
            cursor = await self._conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            raise ConstraintViolation(str(exc)) from exc
        return SQLiteCursor(cursor)

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Run one statement per parameter set."""
        try:
            await self._conn.executemany(sql, params_seq)
        except sqlite3.IntegrityError as exc:
            raise ConstraintViolation(str(exc)) from exc

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements (DDL, migrations)."""
        await self._conn.executescript(sql)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Open a transaction, or a savepoint when one is already open."""
        depth = self._depth.get()
        if depth:
            async with self._savepoint(depth):
                yield
            return

        async with self._tx_lock:
            await self._conn.execute("BEGIN IMMEDIATE")
            token = self._depth.set(1)
            try:
                yield
            except BaseException:
                await self._conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back")
                raise
            else:
                await self._conn.execute("COMMIT")
            finally:
                self._depth.reset(token)

    @asynccontextmanager
    async def _savepoint(self, depth: int) -> AsyncIterator[None]:
        name = f"sp_{depth}"
        await self._conn.execute(f"SAVEPOINT {name}")
        token = self._depth.set(depth + 1)
        try:
            yield
        except BaseException:
            await self._conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            await self._conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        else:
            await self._conn.execute(f"RELEASE SAVEPOINT {name}")
        finally:
            self._depth.reset(token)

    @property
    def in_transaction(self) -> bool:
        """True when the calling task is inside ``transaction()``."""
        return self._depth.get() > 0

    async def commit(self) -> None:
        """Commit pending work. A no-op inside ``transaction()``."""
        if self.in_transaction:
            return
        await self._conn.commit()

    async def close(self) -> None:
        """Close the connection; open transactions are discarded."""
        await self._conn.close()

    # -- Schema --

    async def apply_schema(self) -> None:
        """Apply the SQLite DDL and pending migrations."""
        from versioned_records.db.schema import apply_schema

        await apply_schema(self)

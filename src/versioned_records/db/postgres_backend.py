"""PostgreSQL implementation of the Database protocol.

Uses asyncpg for async access. All application SQL uses ``?``
placeholders; this backend translates them to ``$N`` at execute time.
"""

from __future__ import annotations

import itertools
import logging
import re
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from versioned_records.errors import ConstraintViolation

if TYPE_CHECKING:
    import asyncpg

    from versioned_records.db.backend import Cursor, Row

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\?")

# SQLSTATE class 23: integrity constraint violation
_INTEGRITY_SQLSTATE_CLASS = "23"


def _translate_placeholders(sql: str) -> str:
    """Number each ``?`` placeholder as ``$1``, ``$2``, ... for asyncpg."""
    numbers = itertools.count(1)
    return _PLACEHOLDER_RE.sub(lambda _m: f"${next(numbers)}", sql)


def _is_integrity_error(exc: BaseException) -> bool:
    """True for asyncpg errors in SQLSTATE class 23 (unique, not-null, check, fk)."""
    sqlstate = getattr(exc, "sqlstate", None)
    return isinstance(sqlstate, str) and sqlstate.startswith(_INTEGRITY_SQLSTATE_CLASS)


class PostgresRow:
    """Row protocol over an asyncpg.Record."""

    __slots__ = ("_record",)

    def __init__(self, record: asyncpg.Record) -> None:
        self._record = record

    def __getitem__(self, key: str | int) -> Any:
        return self._record[key]

    def keys(self) -> list[str]:
        return list(self._record.keys())


class PostgresCursor:
    """Cursor protocol over an already-fetched result.

    asyncpg hands back every row at once, so the cursor just walks a list.
    ``rowcount`` comes from the command status (``"UPDATE 3"``) when there
    is one, otherwise it is the number of rows returned.
    """

    def __init__(self, rows: list[asyncpg.Record], status: str | None = None) -> None:
        self._pending = deque(PostgresRow(record) for record in rows)
        self._rowcount = self._parse_rowcount(status) if status else len(rows)

    @property
    def rowcount(self) -> int:
        return self._rowcount

    async def fetchone(self) -> Row | None:
        return self._pending.popleft() if self._pending else None

    async def fetchall(self) -> list[Row]:
        rows: list[Row] = list(self._pending)
        self._pending.clear()
        return rows

    @staticmethod
    def _parse_rowcount(status: str | None) -> int:
        """Trailing count of a command status, or -1 (``"INSERT 0 1"`` -> 1)."""
        *command, count = (status or "").split() or [""]
        if not command or not count.isdigit():
            return -1
        return int(count)


class PostgresBackend:
    """PostgreSQL implementation of the Database protocol.

    Outside a transaction each ``execute()`` call acquires a connection
    from the pool and asyncpg auto-commits the statement. Inside
    ``transaction()`` every statement issued from the same task context
    runs on the connection holding the transaction.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        """Initialize with an asyncpg connection pool."""
        self._pool = pool
        self._tx_conn: ContextVar[asyncpg.Connection | None] = ContextVar(
            f"pg_tx_conn_{id(self)}", default=None
        )

    @classmethod
    async def create(cls, url: str) -> PostgresBackend:
        """Create a PostgresBackend from a connection URL."""
        import asyncpg as _asyncpg

        pool = await _asyncpg.create_pool(url, min_size=2, max_size=10)
        return cls(pool)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield the transaction's connection, or a pooled one."""
        current = self._tx_conn.get()
        if current is not None:
            yield current
            return
        async with self._pool.acquire() as conn:
            yield conn

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Execute a single SQL statement and return a cursor."""
        pg_sql = _translate_placeholders(sql)
        async with self._connection() as conn:
            try:
                # asyncpg.fetch returns list of Records for SELECT / RETURNING
                # asyncpg.execute returns status string for INSERT/UPDATE/DELETE
                stmt = await conn.prepare(pg_sql)
                if stmt.get_attributes():
                    rows = await conn.fetch(pg_sql, *params)
                    return PostgresCursor(rows)
                status = await conn.execute(pg_sql, *params)
                return PostgresCursor([], status=status)
            except Exception as exc:
                if _is_integrity_error(exc):
                    raise ConstraintViolation(str(exc)) from exc
                raise

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Execute a SQL statement for each set of parameters."""
        pg_sql = _translate_placeholders(sql)
        async with self._connection() as conn:
            try:
                await conn.executemany(pg_sql, params_seq)
            except Exception as exc:
                if _is_integrity_error(exc):
                    raise ConstraintViolation(str(exc)) from exc
                raise

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements."""
        async with self._connection() as conn:
            await conn.execute(sql)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Open a transaction, or a savepoint when one is already open."""
        current = self._tx_conn.get()
        if current is not None:
            async with current.transaction():
                yield
            return

        async with self._pool.acquire() as conn:
            token = self._tx_conn.set(conn)
            try:
                async with conn.transaction():
                    yield
            finally:
                self._tx_conn.reset(token)

    async def commit(self) -> None:
        """No-op: asyncpg auto-commits statements outside ``transaction()``."""

    async def close(self) -> None:
        """Close the connection pool."""
        await self._pool.close()

    # -- Schema --

    async def apply_schema(self) -> None:
        """Apply all PostgreSQL DDL."""
        async with self._pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER NOT NULL
                )
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS entity_versions (
                    id BIGSERIAL PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    entity_type TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    changer_type TEXT,
                    changer_id TEXT,
                    version INTEGER NOT NULL CHECK (version > 0),
                    snapshot JSON NOT NULL,
                    UNIQUE(entity_type, entity_id, version)
                )
            """)

            for idx_sql in [
                "CREATE INDEX IF NOT EXISTS idx_versions_entity"
                " ON entity_versions(entity_type, entity_id, version)",
                "CREATE INDEX IF NOT EXISTS idx_versions_changer"
                " ON entity_versions(changer_type, changer_id)",
            ]:
                await conn.execute(idx_sql)

            # Version rows are append-only
            await conn.execute("""
                CREATE OR REPLACE FUNCTION entity_versions_immutable() RETURNS trigger AS $$
                BEGIN
                    RAISE EXCEPTION 'entity_versions rows are immutable'
                        USING ERRCODE = 'integrity_constraint_violation';
                END
                $$ LANGUAGE plpgsql
            """)
            await conn.execute(
                "DROP TRIGGER IF EXISTS entity_versions_immutable ON entity_versions"
            )
            await conn.execute("""
                CREATE TRIGGER entity_versions_immutable BEFORE UPDATE
                ON entity_versions FOR EACH ROW
                EXECUTE FUNCTION entity_versions_immutable()
            """)

            # Schema version init
            row = await conn.fetchrow("SELECT version FROM schema_version")
            if row is None:
                await conn.execute("INSERT INTO schema_version (version) VALUES ($1)", 1)
        logger.info("PostgreSQL schema applied")

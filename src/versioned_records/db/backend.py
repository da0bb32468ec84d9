"""Database backend protocol: a thin abstraction over async DB connections.

The version store and row adapters only talk to these protocols. SQLite
and PostgreSQL implement them, each keeping its placeholder style and
error translation to itself.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Row(Protocol):
    """A result row, indexable by column name or position."""

    def __getitem__(self, key: str | int) -> Any:
        """Column value by name or index."""
        ...

    def keys(self) -> Any:
        """Column names in select order."""
        ...


@runtime_checkable
class Cursor(Protocol):
    """Result of ``Database.execute()``."""

    @property
    def rowcount(self) -> int:
        """Rows affected by the statement, or -1 when unknown."""
        ...

    async def fetchone(self) -> Row | None:
        """Next row, or None when no rows remain."""
        ...

    async def fetchall(self) -> list[Row]:
        """Every row not yet fetched."""
        ...


@runtime_checkable
class Database(Protocol):
    """Async connection to the store.

    All application SQL uses ``?`` placeholders and SQLite-flavored syntax.
    Non-SQLite backends translate at execute time (``?`` → ``$N``).
    Integrity failures (unique, NOT NULL, CHECK) surface as
    :class:`~versioned_records.errors.ConstraintViolation` from every backend.
    """

    async def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Cursor:
        """Execute a single SQL statement and return a cursor."""
        ...

    async def executemany(self, sql: str, params_seq: list[tuple[Any, ...] | list[Any]]) -> None:
        """Execute a SQL statement for each set of parameters."""
        ...

    async def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements (DDL, migrations)."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Open an atomic scope: commit on exit, roll back on exception.

        Nested scopes become savepoints of the enclosing transaction.
        """
        ...

    async def commit(self) -> None:
        """Commit pending work outside of a transaction scope."""
        ...

    async def close(self) -> None:
        """Release the connection or pool."""
        ...

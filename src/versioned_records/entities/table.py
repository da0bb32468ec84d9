"""Row-backed entity adapter for plain tables."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from versioned_records.db.backend import Database, Row
from versioned_records.models.refs import EntityRef
from versioned_records.versioning.diff import strict_equal

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Validate and double-quote a table or column name."""
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class TableEntity:
    """One row of a table with a single-column primary key.

    Satisfies the VersionedEntity protocol. Field values are whatever the
    database returns for the row; ``created_at``/``updated_at`` are
    maintained when the table has those columns.
    """

    def __init__(
        self,
        table: str,
        attributes: Mapping[str, Any],
        *,
        primary_key: str = "id",
        type_tag: str | None = None,
        excluded_fields: Iterable[str] = (),
    ) -> None:
        quote_identifier(table)
        quote_identifier(primary_key)
        if primary_key not in attributes:
            raise ValueError(f"Row of {table} has no primary key column {primary_key!r}")
        self.table = table
        self.primary_key = primary_key
        self.type_tag = type_tag or table
        self._excluded = frozenset(excluded_fields)
        self._original: dict[str, Any] = dict(attributes)
        self._attributes: dict[str, Any] = dict(attributes)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.entity_ref}>"

    def __getitem__(self, name: str) -> Any:
        return self._attributes[name]

    @property
    def entity_ref(self) -> EntityRef:
        """Type tag (the table name by default) and primary key value."""
        return EntityRef(type=self.type_tag, id=str(self._original[self.primary_key]))

    def fields(self) -> dict[str, Any]:
        """Current field values, including staged changes."""
        return dict(self._attributes)

    def stage(self, changes: Mapping[str, Any]) -> None:
        """Apply changes in memory. Unknown columns raise ValueError."""
        unknown = [name for name in changes if name not in self._attributes]
        if unknown:
            raise ValueError(f"Unknown field(s) for {self.table}: {', '.join(sorted(unknown))}")
        if self.primary_key in changes and not strict_equal(
            changes[self.primary_key], self._original[self.primary_key]
        ):
            raise ValueError(f"Primary key {self.primary_key!r} cannot be changed")
        self._attributes.update(changes)

    def dirty(self) -> dict[str, Any]:
        """Staged fields that differ from the persisted row."""
        return {
            name: value
            for name, value in self._attributes.items()
            if not strict_equal(value, self._original.get(name))
        }

    def excluded_version_fields(self) -> frozenset[str]:
        """Fields left out of snapshots besides the timestamps."""
        return self._excluded

    async def save(self, db: Database) -> bool:
        """Write dirty fields to the row.

        Returns True without touching the database when nothing is dirty,
        and False when the row no longer exists.
        """
        changes = self.dirty()
        if not changes:
            return True
        if "updated_at" in self._attributes:
            changes["updated_at"] = _now_iso()
        return await self._update(db, changes)

    async def touch(self, db: Database) -> bool:
        """Bump ``updated_at`` only. This is never versioned."""
        if "updated_at" not in self._attributes:
            return False
        return await self._update(db, {"updated_at": _now_iso()})

    async def _update(self, db: Database, changes: Mapping[str, Any]) -> bool:
        assignments = ", ".join(f"{quote_identifier(name)} = ?" for name in changes)
        cursor = await db.execute(
            f"UPDATE {quote_identifier(self.table)} SET {assignments}"  # noqa: S608
            f" WHERE {quote_identifier(self.primary_key)} = ? RETURNING *",
            [*changes.values(), self._original[self.primary_key]],
        )
        row = await cursor.fetchone()
        if row is None:
            logger.warning(
                "Save rejected: %s row %s no longer exists", self.table, self.entity_ref.id
            )
            return False
        await db.commit()
        self._load_row(row)
        return True

    async def refresh(self, db: Database) -> None:
        """Reload the row. A missing row leaves the in-memory state as is."""
        row = await self._fetch(db, self.table, self.primary_key, self._original[self.primary_key])
        if row is None:
            logger.warning(
                "Refresh skipped: %s row %s no longer exists", self.table, self.entity_ref.id
            )
            return
        self._load_row(row)

    def _load_row(self, row: Row) -> None:
        self._original = {key: row[key] for key in row.keys()}
        self._attributes = dict(self._original)

    @staticmethod
    async def _fetch(db: Database, table: str, primary_key: str, key: Any) -> Row | None:
        cursor = await db.execute(
            f"SELECT * FROM {quote_identifier(table)}"  # noqa: S608
            f" WHERE {quote_identifier(primary_key)} = ?",
            (key,),
        )
        return await cursor.fetchone()

    @classmethod
    async def create(
        cls,
        db: Database,
        table: str,
        values: Mapping[str, Any],
        *,
        primary_key: str = "id",
        timestamps: bool = True,
        **kwargs: Any,
    ) -> TableEntity:
        """Insert a row and return it as an entity. Creation is not versioned."""
        row_values = dict(values)
        if timestamps:
            now = _now_iso()
            row_values.setdefault("created_at", now)
            row_values.setdefault("updated_at", now)
        columns = ", ".join(quote_identifier(name) for name in row_values)
        placeholders = ", ".join("?" for _ in row_values)
        cursor = await db.execute(
            f"INSERT INTO {quote_identifier(table)} ({columns})"  # noqa: S608
            f" VALUES ({placeholders}) RETURNING *",
            list(row_values.values()),
        )
        row = await cursor.fetchone()
        if row is None:
            raise RuntimeError("INSERT ... RETURNING produced no row")
        await db.commit()
        return cls(table, {key: row[key] for key in row.keys()}, primary_key=primary_key, **kwargs)

    @classmethod
    async def load(
        cls,
        db: Database,
        table: str,
        key: Any,
        *,
        primary_key: str = "id",
        **kwargs: Any,
    ) -> TableEntity | None:
        """Load a row by primary key, or None if it does not exist."""
        row = await cls._fetch(db, table, primary_key, key)
        if row is None:
            return None
        return cls(table, {k: row[k] for k in row.keys()}, primary_key=primary_key, **kwargs)

    @classmethod
    def loader(
        cls,
        table: str,
        *,
        primary_key: str = "id",
        excluded_fields: Iterable[str] = (),
        integer_key: bool = False,
    ) -> Callable[[Database, str], Awaitable[TableEntity | None]]:
        """Build a registry loader for rows of ``table``.

        Entity ids arrive as strings; ``integer_key`` converts them back
        for integer primary keys.
        """
        quote_identifier(table)
        excluded = frozenset(excluded_fields)

        async def _load(db: Database, entity_id: str) -> TableEntity | None:
            key: Any = entity_id
            if integer_key:
                try:
                    key = int(entity_id)
                except ValueError:
                    return None
            return await cls.load(db, table, key, primary_key=primary_key, excluded_fields=excluded)

        return _load

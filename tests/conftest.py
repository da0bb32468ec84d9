"""Shared test fixtures."""

import pytest_asyncio

from versioned_records.db.connection import create_connection
from versioned_records.entities.registry import EntityRegistry
from versioned_records.entities.table import TableEntity
from versioned_records.versioning.engine import VersioningEngine

TEST_MODELS_SQL = """
CREATE TABLE IF NOT EXISTS test_models (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT,
    status TEXT,
    count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);
"""


@pytest_asyncio.fixture
async def db():
    """In-memory database with the version schema and a test_models table."""
    conn = await create_connection(":memory:")
    await conn.executescript(TEST_MODELS_SQL)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def engine(db):
    """Versioning engine backed by in-memory DB."""
    return VersioningEngine(db)


@pytest_asyncio.fixture
async def create_model(db):
    """Factory inserting a test_models row (unversioned, like a plain create)."""

    async def _create(**values) -> TableEntity:
        return await TableEntity.create(db, "test_models", values)

    return _create


@pytest_asyncio.fixture
async def registry():
    """Registry that knows the test_models table."""
    reg = EntityRegistry()
    reg.register_table("test_models", integer_key=True)
    return reg


async def reload(db, entity: TableEntity) -> TableEntity:
    """Fresh copy of an entity's row, bypassing the in-memory handle."""
    fresh = await TableEntity.load(db, entity.table, entity["id"])
    assert fresh is not None
    return fresh


async def count_versions(db) -> int:
    """Total rows in entity_versions."""
    cursor = await db.execute("SELECT COUNT(*) FROM entity_versions")
    row = await cursor.fetchone()
    return row[0]

"""Tests for database connection and schema initialization."""

import pytest

from versioned_records.db.connection import create_connection
from versioned_records.errors import ConstraintViolation


@pytest.mark.asyncio
async def test_create_in_memory_connection():
    db = await create_connection(":memory:")
    try:
        cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = {row[0] for row in await cursor.fetchall()}
        assert "entity_versions" in tables
        assert "schema_version" in tables
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_schema_version():
    db = await create_connection(":memory:")
    try:
        cursor = await db.execute("SELECT version FROM schema_version")
        row = await cursor.fetchone()
        assert row[0] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_schema_is_idempotent(tmp_path):
    """Opening the same file twice must not duplicate the schema_version row."""
    path = tmp_path / "versions.db"
    first = await create_connection(path)
    await first.close()

    db = await create_connection(path)
    try:
        cursor = await db.execute("SELECT COUNT(*) FROM schema_version")
        row = await cursor.fetchone()
        assert row[0] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_version_columns():
    db = await create_connection(":memory:")
    try:
        cursor = await db.execute("PRAGMA table_info(entity_versions)")
        columns = {row[1] for row in await cursor.fetchall()}
        assert columns == {
            "id",
            "created_at",
            "updated_at",
            "entity_type",
            "entity_id",
            "changer_type",
            "changer_id",
            "version",
            "snapshot",
        }
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_entity_version_index_exists():
    db = await create_connection(":memory:")
    try:
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name='entity_versions'"
        )
        indexes = {row[0] for row in await cursor.fetchall()}
        assert "idx_versions_entity" in indexes
        assert "idx_versions_changer" in indexes
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_duplicate_version_rejected_by_table():
    db = await create_connection(":memory:")
    try:
        sql = (
            "INSERT INTO entity_versions (created_at, updated_at, entity_type, entity_id,"
            " version, snapshot) VALUES ('t', 't', 'widgets', '1', 1, '{}')"
        )
        await db.execute(sql)
        with pytest.raises(ConstraintViolation):
            await db.execute(sql)
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_version_must_be_positive():
    db = await create_connection(":memory:")
    try:
        with pytest.raises(ConstraintViolation):
            await db.execute(
                "INSERT INTO entity_versions (created_at, updated_at, entity_type, entity_id,"
                " version, snapshot) VALUES ('t', 't', 'widgets', '1', 0, '{}')"
            )
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_version_rows_are_immutable():
    db = await create_connection(":memory:")
    try:
        await db.execute(
            "INSERT INTO entity_versions (created_at, updated_at, entity_type, entity_id,"
            " version, snapshot) VALUES ('t', 't', 'widgets', '1', 1, '{}')"
        )
        with pytest.raises(ConstraintViolation, match="immutable"):
            await db.execute("UPDATE entity_versions SET snapshot = '{\"x\": 1}'")

        cursor = await db.execute("SELECT snapshot FROM entity_versions")
        row = await cursor.fetchone()
        assert row[0] == "{}"
    finally:
        await db.close()

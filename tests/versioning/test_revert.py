"""Tests for reverting to earlier versions."""

import pytest

from versioned_records.entities.table import TableEntity
from versioned_records.models.refs import EntityRef
from versioned_records.versioning.engine import VersioningEngine
from tests.conftest import count_versions, reload


@pytest.mark.asyncio
async def test_revert_to_version(db, engine, create_model):
    model = await create_model(name="v0", email="v0@example.com")
    await engine.update_versioned(model, {"name": "v1", "email": "v1@example.com"})
    await engine.update_versioned(model, {"name": "v2", "email": "v2@example.com"})
    assert model["name"] == "v2"

    assert await engine.revert_to_version(model, 1) is True

    fresh = await reload(db, model)
    assert fresh["name"] == "v1"
    assert fresh["email"] == "v1@example.com"


@pytest.mark.asyncio
async def test_revert_appends_new_version(db, engine, create_model):
    model = await create_model(name="v0")
    await engine.update_versioned(model, {"name": "v1"})
    await engine.update_versioned(model, {"name": "v2"})

    await engine.revert_to_version(model, 1)

    versions = await engine.get_versions(model)
    assert [v.version for v in versions] == [1, 2, 3]
    assert versions[2].snapshot == versions[0].snapshot
    # History is never rewritten
    assert versions[1].snapshot["name"] == "v2"


@pytest.mark.asyncio
async def test_revert_nonexistent_version(db, engine, create_model):
    model = await create_model(name="John")
    await engine.update_versioned(model, {"name": "Jane"})

    assert await engine.revert_to_version(model, 999) is False
    assert await count_versions(db) == 1
    assert (await reload(db, model))["name"] == "Jane"


@pytest.mark.asyncio
async def test_revert_to_current_state_is_noop(db, engine, create_model):
    model = await create_model(name="John")
    await engine.update_versioned(model, {"name": "Jane"})

    assert await engine.revert_to_version(model, 1) is True
    assert await count_versions(db) == 1


@pytest.mark.asyncio
async def test_revert_skips_fields_missing_from_snapshot(db, engine, create_model):
    model = await create_model(name="v0", status="draft")
    await engine.update_versioned(model, {"name": "v1"})
    # Simulate a version captured before the status column was tracked
    await db.execute(
        "INSERT INTO entity_versions"
        " (created_at, updated_at, entity_type, entity_id, version, snapshot)"
        " VALUES (?, ?, ?, ?, ?, ?)",
        (
            "2026-01-01T00:00:00+00:00",
            "2026-01-01T00:00:00+00:00",
            "test_models",
            str(model["id"]),
            2,
            '{"name": "old"}',
        ),
    )
    await engine.update_versioned(model, {"status": "published"})

    assert await engine.revert_to_version(model, 2) is True

    fresh = await reload(db, model)
    assert fresh["name"] == "old"
    assert fresh["status"] == "published"


@pytest.mark.asyncio
async def test_revert_ignores_excluded_fields(db, create_model):
    model = await create_model(name="v0", status="a")
    engine = VersioningEngine(db)
    await engine.update_versioned(model, {"name": "v1", "status": "b"})

    # The status column is excluded from now on; the old snapshot still has it
    current = await reload(db, model)
    entity = TableEntity("test_models", current.fields(), excluded_fields=["status"])
    await engine.update_versioned(entity, {"name": "v2", "status": "c"})

    assert await engine.revert_to_version(entity, 1) is True

    fresh = await reload(db, model)
    assert fresh["name"] == "v1"
    assert fresh["status"] == "c"


@pytest.mark.asyncio
async def test_revert_records_changer(db, create_model):
    engine = VersioningEngine(db, resolve_changer=lambda _e: EntityRef(type="user", id="1"))
    model = await create_model(name="v0")
    await engine.update_versioned(model, {"name": "v1"})
    await engine.update_versioned(model, {"name": "v2"})

    await engine.revert_to_version(model, 1, changer=EntityRef(type="user", id="9"))

    latest = await engine.get_latest_version(model)
    assert latest is not None
    assert str(latest.changer) == "user:9"


@pytest.mark.asyncio
async def test_revert_skips_fields_the_entity_no_longer_has(db, engine, create_model):
    """Snapshot keys for dropped columns are ignored instead of failing the revert."""
    model = await create_model(name="v0")
    await engine.update_versioned(model, {"name": "v1"})
    # A version captured while the row still had a "legacy" column
    await db.execute(
        "INSERT INTO entity_versions"
        " (created_at, updated_at, entity_type, entity_id, version, snapshot)"
        " VALUES (?, ?, ?, ?, ?, ?)",
        (
            "2026-01-01T00:00:00+00:00",
            "2026-01-01T00:00:00+00:00",
            "test_models",
            str(model["id"]),
            2,
            '{"name": "old", "legacy": "gone"}',
        ),
    )

    assert await engine.revert_to_version(model, 2) is True

    fresh = await reload(db, model)
    assert fresh["name"] == "old"
    latest = await engine.get_latest_version(model)
    assert latest is not None
    assert latest.version == 3
    assert "legacy" not in latest.snapshot

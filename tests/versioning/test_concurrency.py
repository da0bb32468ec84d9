"""Tests for concurrent versioned updates."""

import asyncio
import logging

import pytest
import pytest_asyncio

from versioned_records.db.connection import create_connection
from versioned_records.entities.table import TableEntity
from versioned_records.store.version_store import VersionStore
from versioned_records.versioning.engine import VersioningEngine
from tests.conftest import TEST_MODELS_SQL, count_versions, reload


class StaleVersionStore(VersionStore):
    """Reads the version number a concurrent writer saw before the winner committed."""

    async def max_version(self, entity_type: str, entity_id: str) -> int:
        return 0


@pytest.mark.asyncio
async def test_conflicting_version_number_rolls_back(db, engine, create_model, caplog):
    model = await create_model(name="John", email="john@example.com")
    loser_handle = await reload(db, model)

    assert await engine.update_versioned(model, {"name": "Jane"}) is True

    loser = VersioningEngine(db, store=StaleVersionStore(db))
    with caplog.at_level(logging.WARNING, logger="versioned_records.versioning.engine"):
        ok = await loser.update_versioned(loser_handle, {"email": "loser@example.com"})

    assert ok is False
    assert "rolled back" in caplog.text
    assert await count_versions(db) == 1

    # The loser's save was undone with the version insert
    fresh = await reload(db, model)
    assert fresh["name"] == "Jane"
    assert fresh["email"] == "john@example.com"

    # The loser's handle was resynced with the stored row
    assert loser_handle["email"] == "john@example.com"
    assert loser_handle["name"] == "Jane"
    assert loser_handle.dirty() == {}


@pytest.mark.asyncio
async def test_concurrent_updates_on_shared_connection(db, engine, create_model):
    model = await create_model(name="v0", count=0)
    handles = [await reload(db, model) for _ in range(5)]

    results = await asyncio.gather(
        *(
            engine.update_versioned(handle, {"name": f"writer-{i}", "count": i})
            for i, handle in enumerate(handles, start=1)
        )
    )

    assert results == [True] * 5
    versions = await engine.get_versions(model)
    assert [v.version for v in versions] == [1, 2, 3, 4, 5]


@pytest_asyncio.fixture
async def file_dbs(tmp_path):
    """Two connections to one database file."""
    path = tmp_path / "versions.db"
    first = await create_connection(path)
    await first.executescript(TEST_MODELS_SQL)
    second = await create_connection(path)
    yield first, second
    await first.close()
    await second.close()


@pytest.mark.asyncio
async def test_concurrent_writers_get_contiguous_versions(file_dbs):
    first, second = file_dbs
    created = await TableEntity.create(first, "test_models", {"name": "v0"})
    key = created["id"]

    async def _writer(db, label: str, rounds: int) -> list[bool]:
        engine = VersioningEngine(db)
        results = []
        for n in range(rounds):
            entity = await TableEntity.load(db, "test_models", key)
            assert entity is not None
            results.append(await engine.update_versioned(entity, {"name": f"{label}-{n}"}))
        return results

    first_results, second_results = await asyncio.gather(
        _writer(first, "first", 4),
        _writer(second, "second", 4),
    )

    assert first_results == [True] * 4
    assert second_results == [True] * 4

    versions = await VersionStore(first).get_versions("test_models", str(key))
    assert [v.version for v in versions] == list(range(1, 9))

    # The live row matches the highest version
    fresh = await TableEntity.load(first, "test_models", key)
    assert fresh is not None
    assert fresh["name"] == versions[-1].snapshot["name"]

"""Tests for environment-based configuration."""

from pathlib import Path

import pytest

from versioned_records.config import (
    TrackedTable,
    get_database_url,
    get_db_path,
    get_default_changer,
    get_log_level,
    get_tracked_tables,
    is_manager_mode,
)
from versioned_records.models.refs import EntityRef


def test_db_path_default(monkeypatch):
    monkeypatch.delenv("VR_DB_PATH", raising=False)
    assert get_db_path() == Path("~/.local/share/versioned_records/versions.db").expanduser()


def test_db_path_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("VR_DB_PATH", str(tmp_path / "v.db"))
    assert get_db_path() == tmp_path / "v.db"


def test_database_url(monkeypatch):
    monkeypatch.delenv("VR_DATABASE_URL", raising=False)
    assert get_database_url() is None
    monkeypatch.setenv("VR_DATABASE_URL", "")
    assert get_database_url() is None
    monkeypatch.setenv("VR_DATABASE_URL", "postgresql://localhost/app")
    assert get_database_url() == "postgresql://localhost/app"


def test_log_level(monkeypatch):
    monkeypatch.delenv("VR_LOG_LEVEL", raising=False)
    assert get_log_level() == "WARNING"
    monkeypatch.setenv("VR_LOG_LEVEL", "debug")
    assert get_log_level() == "DEBUG"


def test_tracked_tables(monkeypatch):
    """Table specs: name[:primary_key[:int]]."""
    monkeypatch.setenv("VR_TABLES", "widgets,users:user_id, orders:id:int,,")
    assert get_tracked_tables() == [
        TrackedTable("widgets"),
        TrackedTable("users", "user_id"),
        TrackedTable("orders", "id", integer_key=True),
    ]


def test_tracked_tables_empty_key_defaults_to_id(monkeypatch):
    monkeypatch.setenv("VR_TABLES", "items::int")
    assert get_tracked_tables() == [TrackedTable("items", "id", integer_key=True)]


def test_tracked_tables_unset(monkeypatch):
    monkeypatch.delenv("VR_TABLES", raising=False)
    assert get_tracked_tables() == []


def test_default_changer(monkeypatch):
    monkeypatch.delenv("VR_CHANGER", raising=False)
    assert get_default_changer() is None
    monkeypatch.setenv("VR_CHANGER", "service:mcp")
    assert get_default_changer() == EntityRef(type="service", id="mcp")


def test_default_changer_invalid(monkeypatch):
    monkeypatch.setenv("VR_CHANGER", "no-separator")
    with pytest.raises(ValueError, match="type:id"):
        get_default_changer()


def test_manager_mode_gating(monkeypatch):
    """is_manager_mode() should respond to VR_MANAGER env var."""
    monkeypatch.delenv("VR_MANAGER", raising=False)
    assert is_manager_mode() is False

    monkeypatch.setenv("VR_MANAGER", "TRUE")
    assert is_manager_mode() is True

    monkeypatch.setenv("VR_MANAGER", "true")
    assert is_manager_mode() is True

    monkeypatch.setenv("VR_MANAGER", "false")
    assert is_manager_mode() is False

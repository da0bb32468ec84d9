"""Environment-variable-based configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from versioned_records.models.refs import EntityRef


@dataclass(frozen=True)
class TrackedTable:
    """A table whose rows the server can load by type tag."""

    table: str
    primary_key: str = "id"
    integer_key: bool = False


def get_db_path() -> Path:
    """Return the database file path from VR_DB_PATH."""
    raw = os.environ.get("VR_DB_PATH", "~/.local/share/versioned_records/versions.db")
    return Path(raw).expanduser()


def get_database_url() -> str | None:
    """Return the database URL from VR_DATABASE_URL, if set."""
    return os.environ.get("VR_DATABASE_URL") or None


def get_log_level() -> str:
    """Return the logging level from VR_LOG_LEVEL."""
    return os.environ.get("VR_LOG_LEVEL", "WARNING").upper()


def get_tracked_tables() -> list[TrackedTable]:
    """Return the tables listed in VR_TABLES.

    Format: ``widgets,users:user_id,orders:id:int``. The primary key
    defaults to ``id``; a trailing ``:int`` marks an integer key.
    """
    raw = os.environ.get("VR_TABLES", "")
    tables: list[TrackedTable] = []
    for item in raw.split(","):
        parts = [part.strip() for part in item.split(":")]
        if not parts[0]:
            continue
        integer_key = len(parts) > 2 and parts[2].lower() == "int"
        primary_key = parts[1] if len(parts) > 1 and parts[1] else "id"
        tables.append(TrackedTable(parts[0], primary_key, integer_key))
    return tables


def get_default_changer() -> EntityRef | None:
    """Return the changer attributed to server-made changes, from VR_CHANGER."""
    raw = os.environ.get("VR_CHANGER", "").strip()
    if not raw:
        return None
    return EntityRef.parse(raw)


def is_manager_mode() -> bool:
    """Return True if VR_MANAGER is set to TRUE."""
    return os.environ.get("VR_MANAGER", "").upper() == "TRUE"

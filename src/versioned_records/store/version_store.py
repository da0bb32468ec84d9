"""Version history storage."""

import json
import logging
from datetime import UTC, datetime

from versioned_records.db.backend import Database, Row
from versioned_records.models.version import VersionRecord
from versioned_records.versioning.snapshot import encode_snapshot

logger = logging.getLogger(__name__)

_COLUMNS = """id, entity_type, entity_id, changer_type, changer_id, version,
            snapshot, created_at"""


def row_to_version(row: Row) -> VersionRecord:
    """Convert a database row to a VersionRecord."""
    snapshot = row["snapshot"]
    return VersionRecord(
        id=row["id"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        changer_type=row["changer_type"],
        changer_id=row["changer_id"],
        version=row["version"],
        snapshot=json.loads(snapshot) if isinstance(snapshot, str) else snapshot,
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class VersionStore:
    """Append-only storage of entity version records.

    ``append`` is the only write path. Uniqueness of
    (entity_type, entity_id, version) is enforced by the table itself.
    """

    def __init__(self, db: Database):
        """Initialize with a database connection."""
        self.db = db

    async def append(self, record: VersionRecord) -> VersionRecord:
        """Insert a new version record and return it as stored.

        Raises ConstraintViolation if the version number is already taken.
        """
        created_at = record.created_at or datetime.now(UTC)
        stamp = created_at.isoformat()
        cursor = await self.db.execute(
            f"""INSERT INTO entity_versions
            (created_at, updated_at, entity_type, entity_id, changer_type, changer_id,
             version, snapshot)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING {_COLUMNS}""",  # noqa: S608
            (
                stamp,
                stamp,
                record.entity_type,
                record.entity_id,
                record.changer_type,
                record.changer_id,
                record.version,
                encode_snapshot(record.snapshot),
            ),
        )
        row = await cursor.fetchone()
        if row is None:
            raise RuntimeError("INSERT ... RETURNING produced no row")
        await self.db.commit()
        logger.debug(
            "Appended %s:%s v%d", record.entity_type, record.entity_id, record.version
        )
        return row_to_version(row)

    async def max_version(self, entity_type: str, entity_id: str) -> int:
        """Highest version number for an entity, or 0 if it has none."""
        cursor = await self.db.execute(
            """SELECT MAX(version) AS max_version FROM entity_versions
            WHERE entity_type = ? AND entity_id = ?""",
            (entity_type, entity_id),
        )
        row = await cursor.fetchone()
        if row is None or row["max_version"] is None:
            return 0
        return int(row["max_version"])

    async def count_versions(self, entity_type: str, entity_id: str) -> int:
        """Number of stored versions for an entity."""
        cursor = await self.db.execute(
            """SELECT COUNT(*) AS cnt FROM entity_versions
            WHERE entity_type = ? AND entity_id = ?""",
            (entity_type, entity_id),
        )
        row = await cursor.fetchone()
        return int(row["cnt"]) if row else 0

    async def get_version(
        self, entity_type: str, entity_id: str, version: int
    ) -> VersionRecord | None:
        """Get one version of an entity."""
        cursor = await self.db.execute(
            f"""SELECT {_COLUMNS}
            FROM entity_versions
            WHERE entity_type = ? AND entity_id = ? AND version = ?""",  # noqa: S608
            (entity_type, entity_id, version),
        )
        row = await cursor.fetchone()
        return row_to_version(row) if row else None

    async def get_latest_version(self, entity_type: str, entity_id: str) -> VersionRecord | None:
        """Get the latest version of an entity."""
        cursor = await self.db.execute(
            f"""SELECT {_COLUMNS}
            FROM entity_versions
            WHERE entity_type = ? AND entity_id = ?
            ORDER BY version DESC LIMIT 1""",  # noqa: S608
            (entity_type, entity_id),
        )
        row = await cursor.fetchone()
        return row_to_version(row) if row else None

    async def get_versions(self, entity_type: str, entity_id: str) -> list[VersionRecord]:
        """Get all versions of an entity, ordered by version number."""
        cursor = await self.db.execute(
            f"""SELECT {_COLUMNS}
            FROM entity_versions
            WHERE entity_type = ? AND entity_id = ?
            ORDER BY version""",  # noqa: S608
            (entity_type, entity_id),
        )
        rows = await cursor.fetchall()
        return [row_to_version(row) for row in rows]

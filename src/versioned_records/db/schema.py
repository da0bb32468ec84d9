"""DDL and migrations for the version store."""

from versioned_records.db.backend import Database

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS entity_versions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    changer_type TEXT,
    changer_id TEXT,
    version INTEGER NOT NULL CHECK (version > 0),
    snapshot TEXT NOT NULL,
    UNIQUE(entity_type, entity_id, version)
);

CREATE INDEX IF NOT EXISTS idx_versions_entity
    ON entity_versions(entity_type, entity_id, version);
CREATE INDEX IF NOT EXISTS idx_versions_changer
    ON entity_versions(changer_type, changer_id);

-- Version rows are append-only
CREATE TRIGGER IF NOT EXISTS entity_versions_immutable BEFORE UPDATE ON entity_versions
BEGIN
    SELECT RAISE(ABORT, 'entity_versions rows are immutable');
END;
"""


async def apply_schema(db: Database) -> None:
    """Apply the database schema."""
    await db.executescript(SCHEMA_SQL)

    # First run records the schema version
    cursor = await db.execute("SELECT version FROM schema_version")
    row = await cursor.fetchone()
    if row is None:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    await db.commit()

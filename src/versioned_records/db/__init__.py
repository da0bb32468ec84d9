"""Database connection and schema management."""

from versioned_records.db.backend import Cursor, Database, Row
from versioned_records.db.postgres_backend import PostgresBackend
from versioned_records.db.sqlite_backend import SQLiteBackend

__all__ = ["Cursor", "Database", "PostgresBackend", "Row", "SQLiteBackend"]

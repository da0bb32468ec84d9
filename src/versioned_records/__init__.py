"""Record versioning for application entities."""

from versioned_records.entities import EntityRegistry, TableEntity, VersionedEntity
from versioned_records.errors import (
    ConstraintViolation,
    SnapshotEncodingError,
    UnknownEntityType,
    VersioningError,
)
from versioned_records.models.refs import EntityRef
from versioned_records.models.version import FieldChange, FieldDiff, VersionRecord
from versioned_records.store.version_store import VersionStore
from versioned_records.versioning.engine import VersioningEngine

__all__ = [
    "ConstraintViolation",
    "EntityRef",
    "EntityRegistry",
    "FieldChange",
    "FieldDiff",
    "SnapshotEncodingError",
    "TableEntity",
    "UnknownEntityType",
    "VersionRecord",
    "VersionStore",
    "VersionedEntity",
    "VersioningEngine",
    "VersioningError",
]

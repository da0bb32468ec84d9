"""Entity contract, row adapter and type registry."""

from versioned_records.entities.protocol import VersionedEntity
from versioned_records.entities.registry import EntityLoader, EntityRegistry
from versioned_records.entities.table import TableEntity

__all__ = ["EntityLoader", "EntityRegistry", "TableEntity", "VersionedEntity"]

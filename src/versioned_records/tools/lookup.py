"""Shared entity lookup for the MCP tools."""

from versioned_records.entities.protocol import VersionedEntity
from versioned_records.entities.registry import EntityRegistry
from versioned_records.errors import UnknownEntityType
from versioned_records.models.refs import EntityRef
from versioned_records.versioning.engine import VersioningEngine


async def load_entity(
    engine: VersioningEngine,
    registry: EntityRegistry,
    entity_type: str,
    entity_id: str,
) -> tuple[VersionedEntity | None, str | None]:
    """Load an entity for a tool call.

    Returns ``(entity, None)`` on success and ``(None, message)`` when the
    type is unknown or the entity does not exist.
    """
    ref = EntityRef(type=entity_type, id=entity_id)
    try:
        entity = await registry.load(engine.db, ref)
    except UnknownEntityType:
        known = ", ".join(registry.types()) or "none"
        return None, f"Error: Unknown entity type '{entity_type}'. Registered: {known}"
    if entity is None:
        return None, f"[{ref}] not found"
    return entity, None

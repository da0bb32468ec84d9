"""versions_history MCP tool: per-field value history."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from versioned_records.entities.registry import EntityRegistry
from versioned_records.tools.formatters import format_field_history
from versioned_records.tools.lookup import load_entity
from versioned_records.versioning.engine import VersioningEngine

logger = logging.getLogger(__name__)

_MAX_FIELDS = 20


async def _field_history(
    engine: VersioningEngine,
    registry: EntityRegistry,
    entity_type: str,
    entity_id: str,
    fields: list[str],
) -> str:
    if not fields:
        return "Error: At least one field name is required."
    if len(fields) > _MAX_FIELDS:
        return f"Error: Maximum {_MAX_FIELDS} fields per request (got {len(fields)})."

    entity, error = await load_entity(engine, registry, entity_type, entity_id)
    if entity is None:
        return error or "Not found."

    history = await engine.get_fields_history(entity, fields)
    sections = [format_field_history(field, changes) for field, changes in history.items()]
    return f"[{entity.entity_ref}] field history\n\n" + "\n\n".join(sections)


def register_versions_history(mcp: FastMCP) -> None:
    """Register the versions_history tool with the MCP server."""

    @mcp.tool()
    async def versions_history(
        entity_type: Annotated[str, Field(description="Entity type tag, e.g. a table name")],
        entity_id: Annotated[str, Field(description="Entity identifier")],
        fields: Annotated[
            str | list[str],
            Field(description="Field name or list of field names (max 20)"),
        ],
        ctx: Context | None = None,
    ) -> str:
        """Show how one or more fields of an entity changed across versions."""
        if ctx is None:
            raise RuntimeError("Context not injected")

        # Normalize to list
        names = [fields] if isinstance(fields, str) else list(fields)

        lifespan = ctx.lifespan_context
        return await _field_history(
            lifespan["engine"], lifespan["registry"], entity_type, entity_id, names
        )

"""versions_diff MCP tool: field-level diff between versions."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from versioned_records.entities.registry import EntityRegistry
from versioned_records.tools.formatters import format_diff
from versioned_records.tools.lookup import load_entity
from versioned_records.versioning.engine import VersioningEngine

logger = logging.getLogger(__name__)


async def _diff_versions(
    engine: VersioningEngine,
    registry: EntityRegistry,
    entity_type: str,
    entity_id: str,
    from_version: int | None = None,
    to_version: int | None = None,
) -> str:
    entity, error = await load_entity(engine, registry, entity_type, entity_id)
    if entity is None:
        return error or "Not found."
    diff = await engine.get_diff(entity, from_version, to_version)
    return format_diff(entity.entity_ref, diff, from_version, to_version)


def register_versions_diff(mcp: FastMCP) -> None:
    """Register the versions_diff tool with the MCP server."""

    @mcp.tool()
    async def versions_diff(
        entity_type: Annotated[str, Field(description="Entity type tag, e.g. a table name")],
        entity_id: Annotated[str, Field(description="Entity identifier")],
        from_version: Annotated[
            int | None,
            Field(description="Base version; omit to compare against an empty state", ge=1),
        ] = None,
        to_version: Annotated[
            int | None,
            Field(description="Target version; omit to compare against the live record", ge=1),
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Show which fields changed between two versions of an entity.

        Omit to_version to see what changed since from_version in the live
        record. Versions that do not exist count as empty snapshots.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        lifespan = ctx.lifespan_context
        return await _diff_versions(
            lifespan["engine"],
            lifespan["registry"],
            entity_type,
            entity_id,
            from_version,
            to_version,
        )

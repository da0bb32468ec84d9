"""versions_list MCP tool: version listing and retrieval."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from versioned_records.entities.registry import EntityRegistry
from versioned_records.tools.formatters import (
    format_result_list,
    format_version_compact,
    format_version_full,
)
from versioned_records.tools.lookup import load_entity
from versioned_records.versioning.engine import VersioningEngine

logger = logging.getLogger(__name__)


async def _list_versions(
    engine: VersioningEngine,
    registry: EntityRegistry,
    entity_type: str,
    entity_id: str,
    version: int | None = None,
) -> str:
    """One version in full, or every version compact."""
    entity, error = await load_entity(engine, registry, entity_type, entity_id)
    if entity is None:
        return error or "Not found."

    if version is not None:
        record = await engine.get_version(entity, version)
        if record is None:
            return f"[{entity.entity_ref}] v{version} not found"
        return format_version_full(record)

    versions = await engine.get_versions(entity)
    if not versions:
        return f"[{entity.entity_ref}] has no versions."
    latest = versions[-1]
    return format_result_list(
        [format_version_compact(record) for record in versions],
        header=f"[{entity.entity_ref}] latest v{latest.version}",
    )


def register_versions_list(mcp: FastMCP) -> None:
    """Register the versions_list tool with the MCP server."""

    @mcp.tool()
    async def versions_list(
        entity_type: Annotated[str, Field(description="Entity type tag, e.g. a table name")],
        entity_id: Annotated[str, Field(description="Entity identifier")],
        version: Annotated[
            int | None,
            Field(description="Show this version in full instead of listing all", ge=1),
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """List the recorded versions of an entity, or show one version's snapshot."""
        if ctx is None:
            raise RuntimeError("Context not injected")

        lifespan = ctx.lifespan_context
        return await _list_versions(
            lifespan["engine"], lifespan["registry"], entity_type, entity_id, version
        )

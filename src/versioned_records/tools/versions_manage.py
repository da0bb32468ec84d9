"""versions_manage MCP tool: versioned updates and reverts."""

import logging
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from versioned_records.entities.registry import EntityRegistry
from versioned_records.tools.lookup import load_entity
from versioned_records.versioning.engine import VersioningEngine

logger = logging.getLogger(__name__)

_ACTIONS = {"update", "revert"}


def register_versions_manage(mcp: FastMCP) -> None:
    """Register the versions_manage tool with the MCP server."""

    @mcp.tool()
    async def versions_manage(
        action: Annotated[str, Field(description="Action: update, revert")],
        entity_type: Annotated[str, Field(description="Entity type tag, e.g. a table name")],
        entity_id: Annotated[str, Field(description="Entity identifier")],
        version: Annotated[
            int | None,
            Field(description="Required for revert: version to restore", ge=1),
        ] = None,
        changes: Annotated[
            dict[str, Any] | None,
            Field(description="Required for update: field -> new value"),
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Change an entity and record the result as a new version.

        Requires VR_MANAGER=TRUE environment variable.

        Actions:
        - update: Apply `changes` and capture a new version
        - revert: Restore the tracked fields of `version` as a new version
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        if action not in _ACTIONS:
            return f"Unknown action '{action}'. Use: {', '.join(sorted(_ACTIONS))}"

        lifespan = ctx.lifespan_context
        engine: VersioningEngine = lifespan["engine"]
        registry: EntityRegistry = lifespan["registry"]

        if action == "update":
            return await _action_update(engine, registry, entity_type, entity_id, changes)
        elif action == "revert":
            return await _action_revert(engine, registry, entity_type, entity_id, version)

        return "Action not implemented."


async def _action_update(
    engine: VersioningEngine,
    registry: EntityRegistry,
    entity_type: str,
    entity_id: str,
    changes: dict[str, Any] | None,
) -> str:
    """Apply changes as a versioned update."""
    if not changes:
        return "Nothing to update: changes is empty."

    entity, error = await load_entity(engine, registry, entity_type, entity_id)
    if entity is None:
        return error or "Not found."

    try:
        record = await engine.record_update(entity, changes)
    except ValueError as exc:
        return f"Error: {exc}"
    if record is None:
        return f"[{entity.entity_ref}] update failed and was rolled back. Reload and retry."

    logger.info("versions_manage update of %s -> v%d", entity.entity_ref, record.version)
    return f"[{entity.entity_ref}] updated to v{record.version}: {', '.join(sorted(changes))}"


async def _action_revert(
    engine: VersioningEngine,
    registry: EntityRegistry,
    entity_type: str,
    entity_id: str,
    version: int | None,
) -> str:
    """Restore a previous version as a new version."""
    if version is None:
        return "Error: version is required for revert."

    entity, error = await load_entity(engine, registry, entity_type, entity_id)
    if entity is None:
        return error or "Not found."

    before = await engine.get_latest_version(entity)
    if not await engine.revert_to_version(entity, version):
        if await engine.get_version(entity, version) is None:
            return f"[{entity.entity_ref}] v{version} not found"
        return f"[{entity.entity_ref}] revert failed and was rolled back. Reload and retry."

    after = await engine.get_latest_version(entity)
    if after is None or (before is not None and after.version == before.version):
        return f"[{entity.entity_ref}] already matches v{version}; no new version."
    logger.info("versions_manage revert of %s to v%d", entity.entity_ref, version)
    return f"[{entity.entity_ref}] reverted to v{version} as v{after.version}"

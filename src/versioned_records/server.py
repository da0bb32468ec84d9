"""FastMCP server with lifespan management and tool registration."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from versioned_records.config import (
    get_database_url,
    get_db_path,
    get_default_changer,
    get_log_level,
    get_tracked_tables,
    is_manager_mode,
)
from versioned_records.db.connection import create_connection
from versioned_records.entities.protocol import VersionedEntity
from versioned_records.entities.registry import EntityRegistry
from versioned_records.models.refs import EntityRef
from versioned_records.tools.versions_diff import register_versions_diff
from versioned_records.tools.versions_history import register_versions_history
from versioned_records.tools.versions_list import register_versions_list
from versioned_records.tools.versions_manage import register_versions_manage
from versioned_records.versioning.engine import VersioningEngine


def build_registry() -> EntityRegistry:
    """Register every table listed in VR_TABLES."""
    registry = EntityRegistry()
    for tracked in get_tracked_tables():
        registry.register_table(
            tracked.table,
            primary_key=tracked.primary_key,
            integer_key=tracked.integer_key,
        )
    return registry


def _fixed_changer(changer: EntityRef | None):
    """Resolver attributing every change to the configured changer."""

    def _resolve(_entity: VersionedEntity) -> EntityRef | None:
        return changer

    return _resolve


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage database connection lifecycle."""
    # Configure logging to stderr (stdout is MCP stdio transport)
    logging.basicConfig(
        level=getattr(logging, get_log_level(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    if get_database_url():
        logger.info("Connecting to PostgreSQL")
    else:
        logger.info("Opening database at %s", get_db_path())
    db = await create_connection()

    registry = build_registry()
    if registry.types():
        logger.info("Tracking entity types: %s", ", ".join(registry.types()))
    else:
        logger.warning("VR_TABLES is empty; no entity types can be loaded")

    changer = get_default_changer()
    engine = VersioningEngine(db, resolve_changer=_fixed_changer(changer))
    logger.info("Changes attributed to %s", changer or "system")

    try:
        yield {
            "db": db,
            "engine": engine,
            "registry": registry,
        }
    finally:
        await db.close()
        logger.info("Database connection closed")


_INSTRUCTIONS = """\
This server keeps an audit trail of versions for database records. Every \
versioned update stores a full snapshot of the record's fields with a \
version number (1, 2, 3, ...) and the actor that made the change.

READING:
- versions_list: All versions of a record, or one version's full snapshot.
- versions_diff: Fields that differ between two versions, or between a \
version and the live record.
- versions_history: How specific fields changed over time.

CHANGING (manager mode only):
- versions_manage update: Change fields and record a new version.
- versions_manage revert: Restore an old version's fields as a new version. \
History is never rewritten.

Records are addressed by entity_type (the table name) and entity_id.
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "versioned-records",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_versions_list(mcp)
    register_versions_diff(mcp)
    register_versions_history(mcp)

    if is_manager_mode():
        register_versions_manage(mcp)

    return mcp

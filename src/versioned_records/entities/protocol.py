"""The capabilities an entity provides to take part in versioning."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from versioned_records.db.backend import Database
    from versioned_records.models.refs import EntityRef


@runtime_checkable
class VersionedEntity(Protocol):
    """An application record that can be versioned by the engine.

    The engine never reads or writes the host's tables directly: it stages
    changes, asks the entity to persist them, and reads the resulting field
    values back through this interface.
    """

    @property
    def entity_ref(self) -> EntityRef:
        """Stable type tag and identifier of this entity."""
        ...

    def fields(self) -> dict[str, Any]:
        """Current field values: persisted state plus anything staged."""
        ...

    def stage(self, changes: Mapping[str, Any]) -> None:
        """Apply pending changes in memory without persisting them."""
        ...

    def dirty(self) -> dict[str, Any]:
        """Staged fields whose value differs from the persisted state."""
        ...

    async def save(self, db: Database) -> bool:
        """Persist staged changes. Returns False if the save was rejected."""
        ...

    async def refresh(self, db: Database) -> None:
        """Reload persisted state, discarding staged changes."""
        ...

    def excluded_version_fields(self) -> Iterable[str]:
        """Fields to leave out of snapshots besides the timestamps."""
        ...

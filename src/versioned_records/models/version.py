"""Version record models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from versioned_records.models.refs import EntityRef


class VersionRecord(BaseModel):
    """An immutable, numbered snapshot of one entity."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    entity_type: str
    entity_id: str
    changer_type: str | None = None
    changer_id: str | None = None
    version: int = Field(ge=1)
    snapshot: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def entity_ref(self) -> EntityRef:
        """Reference to the versioned entity."""
        return EntityRef(type=self.entity_type, id=self.entity_id)

    @property
    def changer(self) -> EntityRef | None:
        """Reference to the actor behind this version, if any."""
        if self.changer_type is None or self.changer_id is None:
            return None
        return EntityRef(type=self.changer_type, id=self.changer_id)


class FieldDiff(BaseModel):
    """Old and new value of one field between two snapshots."""

    old: Any = None
    new: Any = None


class FieldChange(BaseModel):
    """One entry of a field's history."""

    version: int
    value: Any = None
    changed_at: datetime | None = None
    changer: EntityRef | None = None

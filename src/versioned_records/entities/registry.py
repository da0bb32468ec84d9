"""Type-tag registry for loading entities from polymorphic references."""

import logging
from collections.abc import Awaitable, Callable, Iterable

from versioned_records.db.backend import Database
from versioned_records.entities.protocol import VersionedEntity
from versioned_records.entities.table import TableEntity
from versioned_records.errors import UnknownEntityType
from versioned_records.models.refs import EntityRef

logger = logging.getLogger(__name__)

EntityLoader = Callable[[Database, str], Awaitable[VersionedEntity | None]]


class EntityRegistry:
    """Maps entity type tags to the loaders that fetch them by id."""

    def __init__(self) -> None:
        self._loaders: dict[str, EntityLoader] = {}

    def register(self, type_tag: str, loader: EntityLoader) -> None:
        """Register a loader for a type tag. Each tag may be registered once."""
        if type_tag in self._loaders:
            raise ValueError(f"Entity type {type_tag!r} is already registered")
        self._loaders[type_tag] = loader
        logger.debug("Registered entity type %s", type_tag)

    def register_table(
        self,
        table: str,
        *,
        primary_key: str = "id",
        excluded_fields: Iterable[str] = (),
        integer_key: bool = False,
    ) -> None:
        """Register rows of ``table`` as TableEntity, tagged with the table name."""
        self.register(
            table,
            TableEntity.loader(
                table,
                primary_key=primary_key,
                excluded_fields=excluded_fields,
                integer_key=integer_key,
            ),
        )

    def types(self) -> list[str]:
        """Registered type tags, sorted."""
        return sorted(self._loaders)

    def __contains__(self, type_tag: object) -> bool:
        return type_tag in self._loaders

    async def load(self, db: Database, ref: EntityRef) -> VersionedEntity | None:
        """Load the entity a reference points to, or None if it does not exist."""
        loader = self._loaders.get(ref.type)
        if loader is None:
            raise UnknownEntityType(f"No loader registered for entity type {ref.type!r}")
        return await loader(db, ref.id)

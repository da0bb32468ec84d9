"""Versioned updates, diffs, reverts and field history."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from versioned_records.errors import ConstraintViolation
from versioned_records.models.version import FieldChange, FieldDiff, VersionRecord
from versioned_records.store.version_store import VersionStore
from versioned_records.versioning.diff import diff_snapshots
from versioned_records.versioning.snapshot import capture_snapshot, should_track_field

if TYPE_CHECKING:
    from versioned_records.db.backend import Database
    from versioned_records.entities.protocol import VersionedEntity
    from versioned_records.models.refs import EntityRef

logger = logging.getLogger(__name__)

ChangerResolver = Callable[["VersionedEntity"], "EntityRef | None"]

# Sentinel: resolve the changer instead of using an explicit value
_RESOLVE: Any = object()


def _no_changer(_entity: VersionedEntity) -> EntityRef | None:
    return None


class _SaveRejected(Exception):
    """Raised inside the transaction to roll back a rejected save."""


class VersioningEngine:
    """Couples entity updates with version snapshots.

    ``update_versioned`` (or ``record_update``, which returns the appended
    record) is the only way versions are created. It saves the entity and
    appends the snapshot in one transaction; when the store rejects the
    version number (another writer claimed it first) the entity save is
    rolled back too and the call returns False. There is no
    retry: callers decide whether to reload and try again.

    The changer of a version is taken from the ``changer`` argument when
    given, otherwise from ``resolve_changer(entity)``, which may dispatch on
    the entity's type.
    """

    def __init__(
        self,
        db: Database,
        *,
        store: VersionStore | None = None,
        resolve_changer: ChangerResolver | None = None,
    ):
        """Initialize with a database connection."""
        self.db = db
        self.store = store or VersionStore(db)
        self.resolve_changer = resolve_changer or _no_changer

    # -- Writes --

    async def update_versioned(
        self,
        entity: VersionedEntity,
        changes: Mapping[str, Any],
        *,
        changer: EntityRef | None = _RESOLVE,
    ) -> bool:
        """Apply ``changes``, save the entity and record a new version.

        An empty change set is a successful no-op. Returns False when the
        save is rejected or the version number is already taken; in both
        cases nothing is written.
        """
        if not changes:
            return True
        return await self.record_update(entity, changes, changer=changer) is not None

    async def record_update(
        self,
        entity: VersionedEntity,
        changes: Mapping[str, Any],
        *,
        changer: EntityRef | None = _RESOLVE,
    ) -> VersionRecord | None:
        """Like ``update_versioned``, but return the version it appended.

        Returns None when nothing was written, including for an empty
        change set. Whenever the unit rolls back after the save went
        through, the entity is reloaded so it never holds unsaved values
        that look persisted.
        """
        if not changes:
            return None

        ref = entity.entity_ref
        saved = False
        try:
            async with self.db.transaction():
                entity.stage(changes)
                if not await entity.save(self.db):
                    raise _SaveRejected
                saved = True

                next_version = await self.store.max_version(ref.type, ref.id) + 1
                snapshot = capture_snapshot(entity.fields(), entity.excluded_version_fields())
                actor = self.resolve_changer(entity) if changer is _RESOLVE else changer

                record = await self.store.append(
                    VersionRecord(
                        entity_type=ref.type,
                        entity_id=ref.id,
                        changer_type=actor.type if actor else None,
                        changer_id=actor.id if actor else None,
                        version=next_version,
                        snapshot=snapshot,
                    )
                )
        except _SaveRejected:
            logger.warning("Versioned update of %s rejected by save", ref)
            return None
        except ConstraintViolation as exc:
            logger.warning("Versioned update of %s rolled back: %s", ref, exc)
            if saved:
                await entity.refresh(self.db)
            return None
        except BaseException:
            if saved:
                # The handle holds the rolled-back save; resync with the store
                await entity.refresh(self.db)
            raise

        logger.info("Created %s v%d", ref, record.version)
        return record

    async def revert_to_version(
        self,
        entity: VersionedEntity,
        version: int,
        *,
        changer: EntityRef | None = _RESOLVE,
    ) -> bool:
        """Restore the tracked fields of ``version`` as a new version.

        Returns False if the version does not exist. Reverting to a state
        equal to the live one changes nothing and creates no version.
        Snapshot fields the entity no longer has are skipped.
        """
        record = await self.get_version(entity, version)
        if record is None:
            return False

        excluded = set(entity.excluded_version_fields())
        current = entity.fields()
        entity.stage(
            {
                name: value
                for name, value in record.snapshot.items()
                if name in current and should_track_field(name, excluded)
            }
        )
        return await self.update_versioned(entity, entity.dirty(), changer=changer)

    # -- Reads --

    def should_track_field(self, entity: VersionedEntity, field: str) -> bool:
        """Whether ``field`` of ``entity`` is captured in snapshots."""
        return should_track_field(field, entity.excluded_version_fields())

    def snapshot(self, entity: VersionedEntity) -> dict[str, Any]:
        """Snapshot of the entity's live state, as it would be captured now."""
        return capture_snapshot(entity.fields(), entity.excluded_version_fields())

    async def get_version(self, entity: VersionedEntity, version: int) -> VersionRecord | None:
        """Get one version of the entity, or None."""
        ref = entity.entity_ref
        return await self.store.get_version(ref.type, ref.id, version)

    async def get_latest_version(self, entity: VersionedEntity) -> VersionRecord | None:
        """Get the entity's latest version, or None."""
        ref = entity.entity_ref
        return await self.store.get_latest_version(ref.type, ref.id)

    async def get_versions(self, entity: VersionedEntity) -> list[VersionRecord]:
        """Get all versions of the entity, ascending."""
        ref = entity.entity_ref
        return await self.store.get_versions(ref.type, ref.id)

    async def get_diff(
        self,
        entity: VersionedEntity,
        from_version: int | None = None,
        to_version: int | None = None,
    ) -> dict[str, FieldDiff]:
        """Diff two versions of the entity.

        ``from_version=None`` compares against an empty state;
        ``to_version=None`` compares against the live entity. A version
        that does not exist counts as an empty snapshot.
        """
        old: dict[str, Any] = {}
        if from_version is not None:
            record = await self.get_version(entity, from_version)
            old = record.snapshot if record else {}

        if to_version is None:
            new = self.snapshot(entity)
        else:
            record = await self.get_version(entity, to_version)
            new = record.snapshot if record else {}

        return diff_snapshots(old, new)

    async def get_field_history(self, entity: VersionedEntity, field: str) -> list[FieldChange]:
        """Value of ``field`` in every version whose snapshot contains it."""
        return [
            FieldChange(
                version=record.version,
                value=record.snapshot[field],
                changed_at=record.created_at,
                changer=record.changer,
            )
            for record in await self.get_versions(entity)
            if field in record.snapshot
        ]

    async def get_fields_history(
        self, entity: VersionedEntity, fields: Iterable[str]
    ) -> dict[str, list[FieldChange]]:
        """Field history for several fields, keyed by field name."""
        return {field: await self.get_field_history(entity, field) for field in fields}

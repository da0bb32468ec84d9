"""Snapshot capture: which fields are tracked and how values are stored."""

import json
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from versioned_records.errors import SnapshotEncodingError

# Bookkeeping timestamps are never part of a snapshot
TIMESTAMP_FIELDS = frozenset({"created_at", "updated_at"})


def should_track_field(field: str, excluded: Iterable[str] = ()) -> bool:
    """Return True unless the field is a timestamp or explicitly excluded."""
    if field in TIMESTAMP_FIELDS:
        return False
    return field not in set(excluded)


def _encode_default(value: Any) -> Any:
    """Encode driver types that have an obvious text form."""
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, Decimal | UUID):
        return str(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def encode_snapshot(snapshot: Mapping[str, Any]) -> str:
    """Serialize a snapshot to JSON text."""
    try:
        return json.dumps(snapshot, default=_encode_default)
    except (TypeError, ValueError) as exc:
        raise SnapshotEncodingError(f"Snapshot value is not JSON-serializable: {exc}") from exc


def capture_snapshot(fields: Mapping[str, Any], excluded: Iterable[str] = ()) -> dict[str, Any]:
    """Build a snapshot of the tracked fields, in field order.

    Values go through a JSON round trip so that a live snapshot compares
    exactly like one read back from storage (tuples become lists, dates
    become ISO strings).
    """
    skip = TIMESTAMP_FIELDS | set(excluded)
    tracked = {name: value for name, value in fields.items() if name not in skip}
    return json.loads(encode_snapshot(tracked))

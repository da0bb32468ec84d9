"""Compact output formatters for MCP tool responses."""

import json
from typing import Any

from versioned_records.models.refs import EntityRef
from versioned_records.models.version import FieldChange, FieldDiff, VersionRecord


def format_value(value: Any) -> str:
    """JSON form of a snapshot value: "Jane", 5, null, {"a": 1}."""
    return json.dumps(value, ensure_ascii=False, default=str)


def format_changer(changer: EntityRef | None) -> str:
    """Format: by user:42, or by system when no changer was recorded."""
    return f"by {changer}" if changer else "by system"


def format_version_header(record: VersionRecord) -> str:
    """Format: [widgets:7] v3 | 2026-01-18 16:48 | by user:42."""
    stamp = record.created_at.strftime("%Y-%m-%d %H:%M") if record.created_at else "unknown"
    return (
        f"[{record.entity_ref}] v{record.version} | {stamp} | {format_changer(record.changer)}"
    )


def format_version_compact(record: VersionRecord) -> str:
    """Header + tracked field count. For version listings."""
    return f"{format_version_header(record)}\n  {len(record.snapshot)} field(s)"


def format_version_full(record: VersionRecord) -> str:
    """Header + every snapshot field."""
    lines = [format_version_header(record)]
    lines.extend(f"  {name}: {format_value(value)}" for name, value in record.snapshot.items())
    return "\n".join(lines)


def format_diff(
    ref: EntityRef,
    diff: dict[str, FieldDiff],
    from_version: int | None,
    to_version: int | None,
) -> str:
    """Format: [widgets:7] v1 -> live, then one line per changed field."""
    source = f"v{from_version}" if from_version is not None else "empty"
    target = f"v{to_version}" if to_version is not None else "live"
    header = f"[{ref}] {source} -> {target}"
    if not diff:
        return f"{header}\nNo differences."
    lines = [header, f"{len(diff)} field(s) changed"]
    lines.extend(
        f"  {name}: {format_value(change.old)} -> {format_value(change.new)}"
        for name, change in diff.items()
    )
    return "\n".join(lines)


def format_field_history(field: str, changes: list[FieldChange]) -> str:
    """Field name, then one line per version that captured it."""
    if not changes:
        return f"{field}\n  (no recorded values)"
    lines = [field]
    for change in changes:
        stamp = change.changed_at.strftime("%Y-%m-%d %H:%M") if change.changed_at else "unknown"
        lines.append(
            f"  v{change.version}: {format_value(change.value)} | {stamp} | "
            f"{format_changer(change.changer)}"
        )
    return "\n".join(lines)


def format_result_list(
    formatted_entries: list[str],
    header: str | None = None,
    note: str | None = None,
) -> str:
    """Count + note + entries joined by blank lines."""
    if not formatted_entries:
        return "No results found."

    lines: list[str] = []
    if header:
        lines.append(header)
    lines.append(f"{len(formatted_entries)} result(s)")
    if note:
        lines.append(f"Note: {note}")
    lines.append("")
    lines.append("\n\n".join(formatted_entries))
    return "\n".join(lines)

"""Field-level comparison of snapshots."""

from collections.abc import Mapping
from typing import Any

from versioned_records.models.version import FieldDiff


def strict_equal(a: Any, b: Any) -> bool:
    """Value-and-type equality: ``1``, ``1.0`` and ``True`` are all different."""
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(strict_equal(a[k], b[k]) for k in a)
    if isinstance(a, list | tuple):
        return len(a) == len(b) and all(strict_equal(x, y) for x, y in zip(a, b, strict=True))
    return bool(a == b)


def diff_snapshots(
    old: Mapping[str, Any], new: Mapping[str, Any]
) -> dict[str, FieldDiff]:
    """Return ``{field: FieldDiff}`` for every field whose value differs.

    A field missing on one side counts as ``None`` there. Keys keep the
    order of ``old`` followed by keys only present in ``new``.
    """
    keys = list(old)
    keys.extend(k for k in new if k not in old)

    diff: dict[str, FieldDiff] = {}
    for key in keys:
        old_value = old.get(key)
        new_value = new.get(key)
        if not strict_equal(old_value, new_value):
            diff[key] = FieldDiff(old=old_value, new=new_value)
    return diff

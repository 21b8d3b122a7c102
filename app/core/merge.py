"""Non-destructive merge rules applied when an entity is seen again."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

MetadataMap = dict[str, Any]


def merge_metadata(
    existing: Optional[Mapping[str, Any]], incoming: Optional[Mapping[str, Any]]
) -> MetadataMap:
    """Shallow, right-biased merge: incoming keys win, existing keys survive."""
    merged: MetadataMap = dict(existing or {})
    merged.update(incoming or {})
    return merged


def union_tags(
    existing: Optional[Iterable[str]], incoming: Optional[Iterable[str]]
) -> list[str]:
    """Union preserving first-seen order; stored as a JSON list."""
    result: list[str] = []
    for tag in list(existing or []) + list(incoming or []):
        if tag and tag not in result:
            result.append(tag)
    return result


def non_null_fields(values: Mapping[str, Any]) -> dict[str, Any]:
    """Scalars overwrite only when the incoming value is not null."""
    return {key: value for key, value in values.items() if value is not None}

"""drf-spectacular post-processing: one feature tag per API path."""

from __future__ import annotations

from typing import Any

OPERATION_KEYS = frozenset({"get", "post", "put", "patch", "delete"})

# First matching prefix wins.
PATTERN_TAGS = [
    ("/api/v1/events/{event_id}/preregistrations", "Pre-registration"),
    ("/api/v1/events/{event_id}/participants", "Participants"),
    ("/api/v1/events/{event_id}/stats", "Participants"),
    ("/api/v1/events/{event_id}/stream", "Realtime"),
    ("/api/v1/auth/jwt", "Authentication"),
    ("/api/v1/schema", "Meta"),
]

ALL_TAGS = list(dict.fromkeys(tag for _, tag in PATTERN_TAGS))


def assign_group_tag(path: str) -> str | None:
    return next(
        (tag for prefix, tag in PATTERN_TAGS if path.startswith(prefix)),
        None,
    )


def group_tags(result: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
    """Replace view-derived tags with the feature group of each path."""
    for path, path_item in result.get("paths", {}).items():
        tag = assign_group_tag(path)
        if tag is None:
            continue
        for method, operation in path_item.items():
            if method in OPERATION_KEYS and isinstance(operation, dict):
                operation["tags"] = [tag]

    declared = result.setdefault("tags", [])
    known = {entry.get("name") for entry in declared}
    declared.extend({"name": tag} for tag in ALL_TAGS if tag not in known)
    return result

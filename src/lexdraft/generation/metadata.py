"""Letter metadata merging."""

from typing import Any, Dict, FrozenSet, Optional

# Keys owned by other features; a generation attempt never rewrites them
PRESERVED_KEYS: FrozenSet[str] = frozenset({"aiGenerated", "previousVersions"})


def merge_metadata(
    existing: Optional[Dict[str, Any]],
    updates: Dict[str, Any],
) -> Dict[str, Any]:
    """Shallow-merge ``updates`` over ``existing``.

    Keys in PRESERVED_KEYS keep their existing value when one is present;
    they may only be set when absent.
    """
    merged = dict(existing or {})
    for key, value in updates.items():
        if key in PRESERVED_KEYS and key in merged:
            continue
        merged[key] = value
    return merged

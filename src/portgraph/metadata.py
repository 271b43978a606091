from __future__ import annotations
from typing import Any, Dict, Mapping, Optional, Tuple

def merge_metadata(existing: Optional[Dict[str, Any]],
                   patch: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Merge ``patch`` into ``existing`` in place.

    Truthy values overwrite, falsy values delete the key. Returns the updated
    mapping together with a shallow snapshot taken before the merge.
    """
    if existing is None:
        existing = {}
    before = dict(existing)
    for key, value in patch.items():
        if value:
            existing[key] = value
        else:
            existing.pop(key, None)
    return existing, before

def clearing_patch(existing: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    # a patch that deletes every key currently present
    return {key: None for key in (existing or {})}

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

TAG_DELIMITER = ","


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """
    Trim tags, drop blanks and duplicates while keeping first-seen order.

    Args:
        tags: Raw tag values, or None.

    Returns:
        The cleaned list (empty if nothing usable was given).
    """
    if tags is None:
        return []
    seen: set[str] = set()
    result: List[str] = []
    for tag in tags:
        t = tag.strip()
        if t and t not in seen:
            seen.add(t)
            result.append(t)
    return result


# PUBLIC_INTERFACE
def encode_tags(tags: Optional[Iterable[str]]) -> Optional[str]:
    """Join tags into their stored delimited form. An empty list is stored as None."""
    cleaned = normalize_tags(tags)
    return TAG_DELIMITER.join(cleaned) if cleaned else None


# PUBLIC_INTERFACE
def decode_tags(value: Optional[str]) -> List[str]:
    """Split a stored delimited tag string back into a list."""
    if not value:
        return []
    return [t for t in value.split(TAG_DELIMITER) if t]

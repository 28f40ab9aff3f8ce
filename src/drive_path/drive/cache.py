"""In-memory cache of resolved path segments."""

from __future__ import annotations

import logging

from drive_path.drive.models import ObjectMetadata

logger = logging.getLogger(__name__)


class ResolutionCache:
    """Maps (name, parent ID) pairs to the metadata found for them.

    Entries are only trustworthy until the next write to the drive. There is
    no targeted invalidation: mutating operations call clear() and the whole
    cache is rebuilt from later lookups.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], ObjectMetadata] = {}

    def get(self, name: str, parent_id: str) -> ObjectMetadata | None:
        """Return the cached metadata for a segment, or None on a miss."""
        entry = self._entries.get((name, parent_id))
        if entry is not None:
            logger.debug("[resolution_cache] cache hit; name:%s;parent_id:%s", name, parent_id)
        return entry

    def put(self, name: str, parent_id: str, metadata: ObjectMetadata) -> None:
        self._entries[(name, parent_id)] = metadata

    def clear(self) -> None:
        """Drop every entry."""
        count = len(self._entries)
        self._entries.clear()
        logger.info("[resolution_cache] cleared; entry_count:%d", count)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

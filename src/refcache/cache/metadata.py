"""Cache metadata index."""

import logging
from typing import Dict, List, Optional

import orjson

logger = logging.getLogger(__name__)


class CacheMeta:
    """Enumeration index of cached entries.

    The index is stored under its own key beside the entries and tracks:
    - lastFetch: epoch millis of the most recent successful write
    - files: resource id -> epoch millis when that entry was fetched

    It lets the store size and enumerate entries, and clear them in bulk,
    without reading every payload.
    """

    def __init__(self, last_fetch: int = 0, files: Optional[Dict[str, int]] = None):
        self.last_fetch = last_fetch
        self.files: Dict[str, int] = dict(files or {})

    @classmethod
    def from_bytes(cls, raw: Optional[bytes]) -> "CacheMeta":
        """Decode a stored index, starting fresh when it is missing or corrupted.

        Args:
            raw: Stored bytes, or None if no index exists

        Returns:
            CacheMeta instance
        """
        if raw is None:
            return cls()

        try:
            data = orjson.loads(raw)
            files = {str(k): int(v) for k, v in data.get("files", {}).items()}
            return cls(last_fetch=int(data.get("lastFetch", 0)), files=files)
        except (orjson.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            # Corrupted index, start fresh
            logger.warning(f"Discarding corrupted cache index: {e}")
            return cls()

    def to_bytes(self) -> bytes:
        return orjson.dumps({"lastFetch": self.last_fetch, "files": self.files})

    def record_fetch(self, resource_id: str, fetched_at: int) -> None:
        """Record a successful write for a resource.

        Args:
            resource_id: Resource that was written
            fetched_at: Epoch millis of the fetch
        """
        self.files[resource_id] = fetched_at
        self.last_fetch = max(self.last_fetch, fetched_at)

    def remove(self, resource_id: str) -> None:
        self.files.pop(resource_id, None)

    def resource_ids(self) -> List[str]:
        return list(self.files)

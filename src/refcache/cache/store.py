"""Persistent, key-scoped storage of timestamped content payloads."""

import errno
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union
from urllib.parse import quote, unquote

import orjson
from filelock import FileLock, Timeout

from refcache.cache.config import CacheConfig
from refcache.cache.metadata import CacheMeta
from refcache.cache.validation import expires_at_for, get_ttl_remaining, is_fresh
from refcache.exceptions import CacheCorruption, ParseError, RefCacheError
from refcache.payload import CacheRecord, ContentPayload
from refcache.utils import now_millis

logger = logging.getLogger(__name__)


class CacheError(RefCacheError):
    """Base exception for storage failures inside a cache store."""

    pass


class CacheFullError(CacheError):
    """Raised when the underlying storage has no room for a write."""

    pass


class CacheLockError(CacheError):
    """Raised when unable to acquire the index lock."""

    pass


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload with its TTL window.

    Invariant: ``expires_at == fetched_at + ttl`` for the TTL the entry was
    written with (None when written without a TTL).
    """

    resource_id: str
    payload: ContentPayload
    fetched_at: int
    expires_at: Optional[int]
    source_url: Optional[str] = None

    def is_fresh(self, now: int) -> bool:
        return is_fresh(self.fetched_at, self.expires_at, now)

    def to_record(self) -> CacheRecord:
        return {
            "payload": self.payload.to_dict(),
            "fetchedAt": self.fetched_at,
            "expiresAt": self.expires_at,
            "sourceUrl": self.source_url,
        }

    @classmethod
    def from_record(cls, resource_id: str, record: Any) -> "CacheEntry":
        """Rebuild an entry from its stored record.

        Raises:
            CacheCorruption: If the record is not a valid cache record
        """
        try:
            expires_at = record["expiresAt"]
            return cls(
                resource_id=resource_id,
                payload=ContentPayload.from_dict(record["payload"]),
                fetched_at=int(record["fetchedAt"]),
                expires_at=int(expires_at) if expires_at is not None else None,
                source_url=record.get("sourceUrl"),
            )
        except (KeyError, TypeError, ValueError, AttributeError, ParseError) as e:
            raise CacheCorruption(
                f"Malformed cache record for '{resource_id}': {e}"
            ) from e


@dataclass(frozen=True)
class ResourceListing:
    """The resource ids available under a prefix, as last listed remotely."""

    prefix: str
    resource_ids: Tuple[str, ...]
    fetched_at: int
    expires_at: Optional[int]

    def is_fresh(self, now: int) -> bool:
        return is_fresh(self.fetched_at, self.expires_at, now)

    def to_record(self) -> Dict[str, Any]:
        return {
            "prefix": self.prefix,
            "resourceIds": list(self.resource_ids),
            "fetchedAt": self.fetched_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_record(cls, prefix: str, record: Any) -> "ResourceListing":
        """Rebuild a listing from its stored record.

        Raises:
            CacheCorruption: If the record is not a valid listing record
        """
        try:
            resource_ids = record["resourceIds"]
            if not isinstance(resource_ids, list) or not all(
                isinstance(rid, str) for rid in resource_ids
            ):
                raise TypeError("resourceIds must be a list of strings")
            expires_at = record["expiresAt"]
            return cls(
                prefix=prefix,
                resource_ids=tuple(resource_ids),
                fetched_at=int(record["fetchedAt"]),
                expires_at=int(expires_at) if expires_at is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CacheCorruption(f"Malformed listing record for '{prefix}': {e}") from e


@dataclass(frozen=True)
class CacheStats:
    """Diagnostic summary of a cache store."""

    count: int
    oldest_fetched_at: Optional[int]
    newest_fetched_at: Optional[int]
    total_bytes: int
    last_fetch: Optional[int] = None
    listing_fetched_at: Optional[int] = None


class CacheStore(ABC):
    """Key-scoped store of cache entries.

    Subclasses provide raw byte storage (get/put/delete/list by key). This
    class implements the entry semantics on top of it: reads never raise and
    purge corrupted values, writes never raise and degrade to a logged no-op
    when storage is full or unavailable, and a metadata index keeps track of
    what is cached.

    Entries live under ``key_prefix + resource_id``; the index and cached
    resource listings live under keys outside that namespace so no resource
    id can collide with them.
    """

    def __init__(
        self,
        key_prefix: str = "refcache_",
        max_item_size: Optional[int] = None,
        max_cache_size: Optional[int] = None,
        clock: Callable[[], int] = now_millis,
    ):
        """Initialize the store.

        Args:
            key_prefix: Prefix namespacing entry keys
            max_item_size: Largest serialized entry accepted, in bytes
            max_cache_size: Largest total size of all entries, in bytes
            clock: Callable returning the current time in epoch millis
        """
        self.key_prefix = key_prefix
        base = key_prefix.rstrip("_")
        self.meta_key = f"{base}.meta"
        self.listing_key_prefix = f"{base}.list:"
        self.max_item_size = max_item_size
        self.max_cache_size = max_cache_size
        self.clock = clock

    # =========================================================================
    # Raw storage primitives
    # =========================================================================

    @abstractmethod
    def _get_raw(self, key: str) -> Optional[bytes]:
        """Return the stored bytes for a key, or None if absent."""

    @abstractmethod
    def _put_raw(self, key: str, value: bytes) -> None:
        """Store bytes under a key, replacing any previous value."""

    @abstractmethod
    def _delete_raw(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    @abstractmethod
    def _list_keys(self) -> List[str]:
        """List every key currently stored."""

    @abstractmethod
    def _index_lock(self):
        """Context manager guarding read-modify-write of the index."""

    def _size_of(self, key: str) -> int:
        raw = self._get_raw(key)
        return len(raw) if raw is not None else 0

    # =========================================================================
    # Keys and index
    # =========================================================================

    def entry_key(self, resource_id: str) -> str:
        return f"{self.key_prefix}{resource_id}"

    def _entry_keys(self) -> List[str]:
        return [
            key
            for key in self._list_keys()
            if key.startswith(self.key_prefix)
            and key != self.meta_key
            and not key.startswith(self.listing_key_prefix)
        ]

    def listing_key(self, prefix: str) -> str:
        return f"{self.listing_key_prefix}{prefix}"

    def _listing_keys(self) -> List[str]:
        return [key for key in self._list_keys() if key.startswith(self.listing_key_prefix)]

    def _load_meta(self) -> CacheMeta:
        return CacheMeta.from_bytes(self._get_raw(self.meta_key))

    @contextmanager
    def _editing_meta(self) -> Iterator[CacheMeta]:
        with self._index_lock():
            meta = self._load_meta()
            yield meta
            self._put_raw(self.meta_key, meta.to_bytes())

    # =========================================================================
    # Entry operations
    # =========================================================================

    def read(self, resource_id: str) -> Optional[CacheEntry]:
        """Read the entry for a resource.

        Corrupted values are purged and reported as absent.

        Args:
            resource_id: Resource to read

        Returns:
            CacheEntry, or None if nothing usable is stored
        """
        key = self.entry_key(resource_id)
        try:
            raw = self._get_raw(key)
        except (OSError, CacheError) as e:
            logger.error(f"Cannot read cache entry '{resource_id}': {e}")
            return None

        if raw is None:
            return None

        try:
            return self._decode(resource_id, raw)
        except CacheCorruption as e:
            logger.warning(f"Purging corrupted cache entry '{resource_id}': {e}")
            self.invalidate(resource_id)
            return None

    def _decode(self, resource_id: str, raw: bytes) -> CacheEntry:
        try:
            record = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise CacheCorruption(f"Undecodable cache value: {e}") from e
        return CacheEntry.from_record(resource_id, record)

    def write(
        self,
        resource_id: str,
        payload: ContentPayload,
        ttl: Optional[int],
        source_url: Optional[str] = None,
    ) -> None:
        """Store a payload, replacing any previous entry for the resource.

        Never raises: a write that cannot be stored is logged and dropped,
        leaving the previous entry (if any) in place.

        Args:
            resource_id: Resource to write
            payload: Payload to store
            ttl: Time-to-live in seconds (None never expires)
            source_url: Location the payload was fetched from
        """
        fetched_at = self.clock()
        entry = CacheEntry(
            resource_id=resource_id,
            payload=payload,
            fetched_at=fetched_at,
            expires_at=expires_at_for(fetched_at, ttl),
            source_url=source_url,
        )

        try:
            raw = orjson.dumps(entry.to_record())
        except orjson.JSONEncodeError as e:
            logger.error(f"Cannot serialize payload for '{resource_id}': {e}")
            return

        if self.max_item_size is not None and len(raw) > self.max_item_size:
            logger.warning(
                f"Not caching '{resource_id}': entry size {len(raw)} bytes exceeds "
                f"max_item_size ({self.max_item_size} bytes)"
            )
            return

        key = self.entry_key(resource_id)
        try:
            if self.max_cache_size is not None:
                used = self._total_bytes(exclude=key)
                if used + len(raw) > self.max_cache_size:
                    raise CacheFullError(
                        f"cache would grow to {used + len(raw)} bytes, "
                        f"limit is {self.max_cache_size}"
                    )
            self._put_raw(key, raw)
        except (OSError, CacheError) as e:
            logger.warning(f"Cache write for '{resource_id}' dropped: {e}")
            return

        try:
            with self._editing_meta() as meta:
                meta.record_fetch(resource_id, fetched_at)
        except (OSError, CacheError) as e:
            # Not critical - the entry is cached even if the index is behind
            logger.warning(f"Cache index update failed for '{resource_id}': {e}")

        logger.debug(f"Cached '{resource_id}' (version {payload.version})")

    def invalidate(self, resource_id: str) -> None:
        """Remove the entry for a resource.

        Args:
            resource_id: Resource to remove
        """
        try:
            self._delete_raw(self.entry_key(resource_id))
            with self._editing_meta() as meta:
                meta.remove(resource_id)
        except (OSError, CacheError) as e:
            logger.warning(f"Cannot invalidate cache entry '{resource_id}': {e}")

    def invalidate_all(self) -> None:
        """Remove every entry, every cached listing and the index."""
        try:
            with self._index_lock():
                meta = self._load_meta()
                keys = {self.entry_key(rid) for rid in meta.resource_ids()}
                keys.update(self._entry_keys())
                listing_keys = self._listing_keys()
                for key in [*keys, *listing_keys]:
                    self._delete_raw(key)
                self._delete_raw(self.meta_key)
        except (OSError, CacheError) as e:
            logger.warning(f"Cannot clear cache: {e}")
            return
        logger.info(
            f"Cleared {len(keys)} cache entries and {len(listing_keys)} listings"
        )

    # =========================================================================
    # Resource listings
    # =========================================================================

    def read_listing(self, prefix: str) -> Optional[ResourceListing]:
        """Read the cached listing for a prefix.

        Corrupted values are purged and reported as absent.
        """
        key = self.listing_key(prefix)
        try:
            raw = self._get_raw(key)
        except (OSError, CacheError) as e:
            logger.error(f"Cannot read cached listing '{prefix}': {e}")
            return None

        if raw is None:
            return None

        try:
            return ResourceListing.from_record(prefix, orjson.loads(raw))
        except (orjson.JSONDecodeError, CacheCorruption) as e:
            logger.warning(f"Purging corrupted listing '{prefix}': {e}")
            try:
                self._delete_raw(key)
            except (OSError, CacheError) as delete_error:
                logger.warning(f"Cannot purge listing '{prefix}': {delete_error}")
            return None

    def write_listing(
        self, prefix: str, resource_ids: List[str], ttl: Optional[int]
    ) -> None:
        """Store the listing for a prefix, replacing any previous one.

        Never raises; failures are logged and the write is dropped.

        Args:
            prefix: Listed prefix
            resource_ids: Resource ids found under the prefix
            ttl: Time-to-live in seconds (None never expires)
        """
        fetched_at = self.clock()
        listing = ResourceListing(
            prefix=prefix,
            resource_ids=tuple(resource_ids),
            fetched_at=fetched_at,
            expires_at=expires_at_for(fetched_at, ttl),
        )
        raw = orjson.dumps(listing.to_record())

        if self.max_item_size is not None and len(raw) > self.max_item_size:
            logger.warning(
                f"Not caching listing '{prefix}': {len(raw)} bytes exceeds "
                f"max_item_size ({self.max_item_size} bytes)"
            )
            return

        try:
            self._put_raw(self.listing_key(prefix), raw)
        except (OSError, CacheError) as e:
            logger.warning(f"Listing write for '{prefix}' dropped: {e}")
            return
        logger.debug(f"Cached listing '{prefix}' ({len(resource_ids)} resources)")

    def _listings(self) -> List[ResourceListing]:
        listings = []
        for key in self._listing_keys():
            listing = self.read_listing(key[len(self.listing_key_prefix):])
            if listing is not None:
                listings.append(listing)
        return listings

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def _total_bytes(self, exclude: Optional[str] = None) -> int:
        return sum(self._size_of(key) for key in self._entry_keys() if key != exclude)

    def resource_ids(self) -> List[str]:
        """List resource ids recorded in the index."""
        return self._load_meta().resource_ids()

    def stats(self) -> CacheStats:
        """Get cache statistics from the index.

        Returns:
            CacheStats with entry count, fetch time range, stored bytes and
            the time of the most recent listing fetch
        """
        meta = self._load_meta()
        present: Dict[str, int] = {}
        total_bytes = 0
        for resource_id, fetched_at in meta.files.items():
            size = self._size_of(self.entry_key(resource_id))
            if size:
                present[resource_id] = fetched_at
                total_bytes += size

        return CacheStats(
            count=len(present),
            oldest_fetched_at=min(present.values()) if present else None,
            newest_fetched_at=max(present.values()) if present else None,
            total_bytes=total_bytes,
            last_fetch=meta.last_fetch or None,
            listing_fetched_at=max(
                (listing.fetched_at for listing in self._listings()), default=None
            ),
        )

    def info(self, resource_id: str) -> Optional[Dict[str, Any]]:
        """Get diagnostic information for one entry.

        Args:
            resource_id: Resource to describe

        Returns:
            Info dict, or None if the resource is not cached
        """
        entry = self.read(resource_id)
        if entry is None:
            return None

        now = self.clock()
        return {
            "resource_id": resource_id,
            "version": entry.payload.version,
            "last_updated": entry.payload.last_updated,
            "fetched_at": entry.fetched_at,
            "expires_at": entry.expires_at,
            "fresh": entry.is_fresh(now),
            "ttl_remaining": get_ttl_remaining(entry.expires_at, now),
            "source_url": entry.source_url,
            "size_bytes": self._size_of(self.entry_key(resource_id)),
        }


class MemoryCacheStore(CacheStore):
    """Cache store keeping raw values in a dict.

    Useful in tests and for embedding without a writable disk.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._values: Dict[str, bytes] = {}
        self._lock = threading.RLock()

    def _get_raw(self, key: str) -> Optional[bytes]:
        return self._values.get(key)

    def _put_raw(self, key: str, value: bytes) -> None:
        self._values[key] = value

    def _delete_raw(self, key: str) -> None:
        self._values.pop(key, None)

    def _list_keys(self) -> List[str]:
        return list(self._values)

    def _index_lock(self):
        return self._lock


class FileCacheStore(CacheStore):
    """Cache store writing one JSON file per key under a cache directory.

    Writes go through a temp file and an atomic rename, so readers only ever
    see whole values. The index update is the one read-modify-write and is
    guarded by a file lock, which also covers other processes sharing the
    directory.
    """

    def __init__(self, cache_dir: Union[str, Path], lock_timeout: float = 30, **kwargs):
        """Initialize file-backed store.

        Args:
            cache_dir: Directory holding the cache
            lock_timeout: Seconds to wait for the index lock
            **kwargs: Passed to CacheStore
        """
        super().__init__(**kwargs)
        self.cache_dir = Path(cache_dir).expanduser()
        self.entries_dir = self.cache_dir / "entries"
        self.lock_path = self.cache_dir / ".locks" / "index.lock"
        self.lock_timeout = lock_timeout

    @classmethod
    def from_config(cls, config: CacheConfig, **kwargs) -> "FileCacheStore":
        """Create a store from a CacheConfig.

        Args:
            config: Cache configuration
            **kwargs: Extra CacheStore arguments (e.g. clock)
        """
        return cls(
            config.cache_dir,
            key_prefix=config.key_prefix,
            max_item_size=config.max_item_size,
            max_cache_size=config.max_cache_size,
            **kwargs,
        )

    def _path_for(self, key: str) -> Path:
        return self.entries_dir / f"{quote(key, safe='')}.json"

    def _get_raw(self, key: str) -> Optional[bytes]:
        try:
            return self._path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    def _put_raw(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        temp_path = path.with_suffix(path.suffix + ".tmp")

        try:
            self.entries_dir.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "wb") as f:
                f.write(value)
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as cleanup_error:
                    logger.warning(f"Failed to clean up temp file: {cleanup_error}")
            if e.errno == errno.ENOSPC:
                raise CacheFullError(f"Disk full while writing {path.name}") from e
            raise CacheError(f"Cannot write cache file {path}: {e}") from e

    def _delete_raw(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def _list_keys(self) -> List[str]:
        if not self.entries_dir.exists():
            return []
        return [unquote(path.stem) for path in self.entries_dir.glob("*.json")]

    def _size_of(self, key: str) -> int:
        try:
            return self._path_for(key).stat().st_size
        except FileNotFoundError:
            return 0

    @contextmanager
    def _index_lock(self):
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create lock directory: {e}") from e

        try:
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                yield
        except Timeout as e:
            raise CacheLockError(
                f"Timeout acquiring cache index lock after {self.lock_timeout} seconds"
            ) from e

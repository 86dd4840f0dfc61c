"""refcache: offline-first caching and synchronization of reference content."""

__version__ = "0.1.0"

from refcache.cache import CacheConfig, CacheEntry, FileCacheStore, MemoryCacheStore
from refcache.exceptions import (
    CacheCorruption,
    ContentUnavailable,
    ParseError,
    RefCacheError,
    TransportError,
)
from refcache.payload import ContentPayload
from refcache.sources import BundledSource, RemoteSource
from refcache.sync import SyncOrchestrator, UpdateEvent

__all__ = [
    "SyncOrchestrator",
    "UpdateEvent",
    "ContentPayload",
    "CacheConfig",
    "CacheEntry",
    "FileCacheStore",
    "MemoryCacheStore",
    "BundledSource",
    "RemoteSource",
    "RefCacheError",
    "TransportError",
    "ParseError",
    "CacheCorruption",
    "ContentUnavailable",
    "__version__",
]

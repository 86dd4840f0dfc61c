"""Persistent caching of reference content.

This module provides TTL-scoped storage of content payloads with a metadata
index for enumeration and bulk clearing.

Key components:
- CacheStore: Entry semantics over raw key storage (FileCacheStore, MemoryCacheStore)
- CacheConfig: Configuration management
- CacheMeta: Enumeration index
- is_newer / is_fresh: Version and TTL validation
"""

from refcache.cache.config import CacheConfig, ResourceClass
from refcache.cache.metadata import CacheMeta
from refcache.cache.store import (
    CacheEntry,
    CacheError,
    CacheFullError,
    CacheLockError,
    CacheStats,
    CacheStore,
    FileCacheStore,
    MemoryCacheStore,
    ResourceListing,
)
from refcache.cache.validation import is_fresh, is_newer

__all__ = [
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
    "CacheEntry",
    "CacheStats",
    "ResourceListing",
    "CacheMeta",
    "CacheConfig",
    "ResourceClass",
    "CacheError",
    "CacheFullError",
    "CacheLockError",
    "is_fresh",
    "is_newer",
]

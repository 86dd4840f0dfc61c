"""Storage backend for reading bundled and remote content."""

from refcache.storage.backend import StorageBackend

__all__ = ["StorageBackend"]

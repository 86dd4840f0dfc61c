"""Exception hierarchy for refcache.

Only ``ContentUnavailable`` is meant to reach the user-facing layer. The
others are raised by sources and the cache store and handled inside the
sync orchestrator.
"""


class RefCacheError(Exception):
    """Base exception for all refcache errors."""

    pass


class TransportError(RefCacheError):
    """Raised when the remote authority cannot be reached or answers with an error."""

    pass


class ParseError(RefCacheError):
    """Raised when a remote or bundled payload does not have the expected shape."""

    pass


class CacheCorruption(RefCacheError):
    """Raised when a stored cache value cannot be deserialized."""

    pass


class ContentUnavailable(RefCacheError):
    """Raised when no tier (cache, bundle, or remote) could produce a payload."""

    def __init__(self, resource_id: str, message: str = ""):
        self.resource_id = resource_id
        super().__init__(
            message or f"No reference content could be loaded for '{resource_id}'"
        )


class ConfigError(RefCacheError):
    """Raised when a configuration file cannot be loaded."""

    pass

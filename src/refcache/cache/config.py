"""Cache configuration management."""

import json
import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import List, Optional, Tuple

from refcache.exceptions import ConfigError

DEFAULT_CACHE_DIR = Path.home() / ".refcache"
DEFAULT_REMOTE_BASE_URL = (
    "https://raw.githubusercontent.com/BigScaryGames/ExceedV/main/source/content"
)


@dataclass(frozen=True)
class ResourceClass:
    """A family of resources sharing one TTL.

    Attributes:
        name: Class name (e.g. 'database', 'file')
        ttl: Time-to-live in seconds
        patterns: fnmatch patterns matched against resource ids
    """

    name: str
    ttl: int
    patterns: Tuple[str, ...] = ()

    def matches(self, resource_id: str) -> bool:
        return any(fnmatchcase(resource_id, pattern) for pattern in self.patterns)


def default_resource_classes() -> List[ResourceClass]:
    """Whole-database resources keep for a week, individual rule files for a day."""
    return [
        ResourceClass("database", ttl=7 * 24 * 60 * 60, patterns=("perks", "spells")),
        ResourceClass("file", ttl=24 * 60 * 60, patterns=("rules/*",)),
    ]


@dataclass
class CacheConfig:
    """Configuration for the reference content cache.

    Attributes:
        cache_dir: Directory where cache entries are persisted
        key_prefix: Prefix namespacing every stored key
        default_ttl: TTL in seconds for resources matching no class (24 hours)
        resource_classes: Per-class TTLs, first match wins
        remote_base_url: Base location of the remote authority
        bundled_base_path: Base location of the content shipped with the app
        resource_suffix: Suffix appended to resource ids to form file names
        max_item_size: Maximum serialized size per entry in bytes (5 MB)
        max_cache_size: Maximum total cache size in bytes (None = unlimited)
        listing_ttl: TTL in seconds of cached resource listings (24 hours, as
            for individual files)
    """

    cache_dir: Path = DEFAULT_CACHE_DIR
    key_prefix: str = "refcache_"
    default_ttl: int = 86400  # 24 hours
    resource_classes: List[ResourceClass] = field(
        default_factory=default_resource_classes
    )
    remote_base_url: str = DEFAULT_REMOTE_BASE_URL
    bundled_base_path: Optional[str] = None
    resource_suffix: str = ".json"
    max_item_size: int = 5 * 1024 * 1024
    max_cache_size: Optional[int] = None
    listing_ttl: int = 24 * 60 * 60

    def __post_init__(self):
        """Normalize cache_dir to an expanded Path."""
        if self.cache_dir is None:
            self.cache_dir = DEFAULT_CACHE_DIR
        self.cache_dir = Path(self.cache_dir).expanduser()

    def ttl_for(self, resource_id: str) -> int:
        """Get the TTL in seconds for a resource id.

        Args:
            resource_id: Resource id to look up

        Returns:
            TTL of the first matching resource class, else ``default_ttl``
        """
        for resource_class in self.resource_classes:
            if resource_class.matches(resource_id):
                return resource_class.ttl
        return self.default_ttl

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            CacheConfig instance (defaults if the file does not exist)

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        if config_path is None:
            config_path = DEFAULT_CACHE_DIR / "config.json"
        config_path = Path(config_path)

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "r") as f:
                data = json.load(f)

            if "cache_dir" in data:
                data["cache_dir"] = Path(data["cache_dir"])

            if "resource_classes" in data:
                data["resource_classes"] = [
                    ResourceClass(
                        name=item["name"],
                        ttl=int(item["ttl"]),
                        patterns=tuple(item.get("patterns", ())),
                    )
                    for item in data["resource_classes"]
                ]

            return cls(**data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid cache config at {config_path}: {e}") from e

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file.

        Args:
            config_path: Path to config file. If None, uses cache_dir/config.json.
        """
        if config_path is None:
            config_path = self.cache_dir / "config.json"
        config_path = Path(config_path)

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir),
            "key_prefix": self.key_prefix,
            "default_ttl": self.default_ttl,
            "resource_classes": [
                {"name": rc.name, "ttl": rc.ttl, "patterns": list(rc.patterns)}
                for rc in self.resource_classes
            ],
            "remote_base_url": self.remote_base_url,
            "bundled_base_path": self.bundled_base_path,
            "resource_suffix": self.resource_suffix,
            "max_item_size": self.max_item_size,
            "max_cache_size": self.max_cache_size,
            "listing_ttl": self.listing_ttl,
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            REFCACHE_CACHE_DIR: Cache directory path
            REFCACHE_TTL: Default TTL in seconds
            REFCACHE_REMOTE_URL: Base location of the remote authority
            REFCACHE_BUNDLED_PATH: Base location of bundled content
            REFCACHE_MAX_ITEM_SIZE: Maximum entry size in bytes

        Returns:
            CacheConfig instance
        """
        config = cls()

        if os.getenv("REFCACHE_CACHE_DIR"):
            config.cache_dir = Path(os.getenv("REFCACHE_CACHE_DIR")).expanduser()

        if os.getenv("REFCACHE_TTL"):
            config.default_ttl = int(os.getenv("REFCACHE_TTL"))

        if os.getenv("REFCACHE_REMOTE_URL"):
            config.remote_base_url = os.getenv("REFCACHE_REMOTE_URL")

        if os.getenv("REFCACHE_BUNDLED_PATH"):
            config.bundled_base_path = os.getenv("REFCACHE_BUNDLED_PATH")

        if os.getenv("REFCACHE_MAX_ITEM_SIZE"):
            config.max_item_size = int(os.getenv("REFCACHE_MAX_ITEM_SIZE"))

        return config


# Global cache configuration instance
_global_config: Optional[CacheConfig] = None


def get_global_config() -> CacheConfig:
    """Get global cache configuration.

    Returns:
        Global CacheConfig instance
    """
    global _global_config
    if _global_config is None:
        # Config file wins when present, then env, then defaults
        config_path = DEFAULT_CACHE_DIR / "config.json"
        try:
            if config_path.exists():
                _global_config = CacheConfig.load(config_path)
            else:
                _global_config = CacheConfig.from_env()
        except ConfigError:
            _global_config = CacheConfig.from_env()
    return _global_config


def set_global_config(config: Optional[CacheConfig]) -> None:
    """Set global cache configuration.

    Args:
        config: CacheConfig instance to use globally (None resets to lazy loading)
    """
    global _global_config
    _global_config = config

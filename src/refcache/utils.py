"""Utility functions for refcache."""

import re
import time
from pathlib import Path
from typing import List, Optional, Union


def now_millis() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def is_cloud_path(path: Union[str, Path]) -> bool:
    """Check if a path is a cloud storage or web path.

    Args:
        path: Path to check

    Returns:
        True if path starts with a remote storage protocol

    Examples:
        >>> is_cloud_path('https://raw.githubusercontent.com/org/repo/main')
        True
        >>> is_cloud_path('/opt/app/data')
        False
        >>> is_cloud_path('gs://bucket/content')
        True
    """
    path_str = str(path)
    cloud_prefixes = (
        "s3://",
        "gs://",
        "gcs://",
        "az://",
        "azure://",
        "https://",
        "http://",
        "file://",
    )
    return path_str.startswith(cloud_prefixes)


def join_location(base: Union[str, Path], name: str) -> str:
    """Join a base location and a relative name.

    Remote locations are joined with forward slashes; local ones with the
    platform separator.

    Examples:
        >>> join_location('https://example.com/content/', 'perks.json')
        'https://example.com/content/perks.json'
    """
    if is_cloud_path(base):
        return f"{str(base).rstrip('/')}/{name.lstrip('/')}"
    return str(Path(base) / name)


def format_cache_age(timestamp_ms: int, now_ms: Optional[int] = None) -> str:
    """Format the age of a cache timestamp for display.

    Args:
        timestamp_ms: Epoch milliseconds when the content was fetched
        now_ms: Reference time in epoch milliseconds (defaults to now)

    Returns:
        Short relative age such as ``"Just now"``, ``"5m ago"``, ``"3h ago"``
        or ``"2d ago"``

    Examples:
        >>> format_cache_age(0, 90 * 60 * 1000)
        '1h ago'
    """
    if now_ms is None:
        now_ms = now_millis()

    age_minutes = max(0, now_ms - timestamp_ms) // 60000
    age_hours = age_minutes // 60
    age_days = age_hours // 24

    if age_days > 0:
        return f"{age_days}d ago"
    elif age_hours > 0:
        return f"{age_hours}h ago"
    elif age_minutes > 0:
        return f"{age_minutes}m ago"
    return "Just now"


def format_size(size_bytes: int) -> str:
    """Format a size in bytes to a human-readable string.

    Examples:
        >>> format_size(1024)
        '1.0 KB'
        >>> format_size(1536000)
        '1.5 MB'
    """
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} B"
    return f"{size:.1f} {units[unit_index]}"


def validate_resource_id(resource_id: str) -> str:
    """Check that a resource id is safe to use as a storage key and path.

    Resource ids are relative, slash-separated names such as ``perks`` or
    ``rules/1. Introduction.md``.

    Args:
        resource_id: Resource id to check

    Returns:
        The resource id unchanged

    Raises:
        ValueError: If the id is empty, absolute, or walks out of its base
    """
    if not isinstance(resource_id, str) or not resource_id.strip():
        raise ValueError("Resource id must be a non-empty string")
    if resource_id.startswith("/") or "\\" in resource_id:
        raise ValueError(f"Resource id must be a relative path: {resource_id!r}")
    if any(part in ("", ".", "..") for part in resource_id.split("/")):
        raise ValueError(f"Invalid path segment in resource id: {resource_id!r}")
    return resource_id


def natural_sort_key(name: str) -> List[Union[int, str]]:
    """Sort key ordering embedded numbers by value.

    Examples:
        >>> sorted(["10. Magic.md", "2. Combat.md", "1. Introduction.md"], key=natural_sort_key)
        ['1. Introduction.md', '2. Combat.md', '10. Magic.md']
    """
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", name)]

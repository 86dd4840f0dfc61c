"""Freshness and version checks for cached content."""

from typing import Optional

from refcache.payload import ContentPayload


def expires_at_for(fetched_at: int, ttl_seconds: Optional[int]) -> Optional[int]:
    """Compute the expiry of an entry fetched at ``fetched_at``.

    Args:
        fetched_at: Epoch milliseconds of the fetch
        ttl_seconds: Time-to-live in seconds, or None to never expire

    Returns:
        Epoch milliseconds after which the entry is stale, or None
    """
    if ttl_seconds is None:
        return None
    return fetched_at + int(ttl_seconds * 1000)


def is_fresh(fetched_at: int, expires_at: Optional[int], now: int) -> bool:
    """Check whether an entry is inside its TTL window.

    An entry is fresh while ``fetched_at <= now <= expires_at`` and stale once
    ``now > expires_at``. A fetch time in the future (clock moved backwards)
    is treated as stale so the entry gets revalidated.

    Args:
        fetched_at: Epoch milliseconds of the fetch
        expires_at: Epoch milliseconds of expiry (None means never expire)
        now: Current time in epoch milliseconds

    Returns:
        True if the entry is still fresh
    """
    if now < fetched_at:
        return False
    if expires_at is None:
        return True
    return now <= expires_at


def get_ttl_remaining(expires_at: Optional[int], now: int) -> Optional[int]:
    """Get remaining seconds until an entry goes stale.

    Args:
        expires_at: Epoch milliseconds of expiry
        now: Current time in epoch milliseconds

    Returns:
        Seconds remaining (0 once stale), or None if never expires
    """
    if expires_at is None:
        return None
    return max(0, (expires_at - now) // 1000)


def is_newer(candidate: ContentPayload, current: ContentPayload) -> bool:
    """Decide whether ``candidate`` supersedes ``current``.

    Only metadata is compared: the candidate is newer when its
    ``last_updated`` is strictly greater. Equal timestamps are not newer, so
    refetching identical content never counts as an update.

    Examples:
        >>> old = ContentPayload("a1", 1000, {})
        >>> is_newer(ContentPayload("b2", 2000, {}), old)
        True
        >>> is_newer(ContentPayload("a1", 1000, {}), old)
        False
    """
    return candidate.last_updated > current.last_updated

"""Stale-while-revalidate retrieval of reference content."""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from refcache.cache.config import CacheConfig, get_global_config
from refcache.cache.store import CacheStats, CacheStore, FileCacheStore
from refcache.cache.validation import is_newer
from refcache.exceptions import ContentUnavailable, ParseError, TransportError
from refcache.payload import ContentPayload
from refcache.sources import BundledSource, RemoteSource
from refcache.sync.notifications import UpdateCallback, UpdateEvent, UpdateNotifier
from refcache.sync.supervisor import TaskSupervisor
from refcache.utils import validate_resource_id

logger = logging.getLogger(__name__)

# Resource ids are relative, so this cannot collide with a content fetch
LISTING_FETCH_KEY = "/list/"


class SyncOrchestrator:
    """Serves reference content from the fastest available tier.

    Resolution order for ``load()``:

    1. Fresh cache entry: returned immediately.
    2. Bundled content (no entry, or a stale one): returned immediately.
    3. Remote fetch, awaited. If it fails, a stale cache entry is returned
       as a last resort.
    4. Otherwise ``ContentUnavailable`` is raised.

    Whenever tier 1 or 2 answers, a background revalidation fetches the
    remote copy. The fetched payload always replaces the cache entry (which
    restarts its TTL window), and subscribers are notified only when it is
    newer than what the caller was served.

    At most one remote fetch per resource id is in flight at a time; any
    other request for the same id attaches to it.

    Examples:
        >>> orchestrator = SyncOrchestrator.from_config()
        >>> orchestrator.subscribe(lambda event: print(event.resource_id))
        >>> payload = await orchestrator.load("perks")
    """

    def __init__(
        self,
        store: CacheStore,
        remote: RemoteSource,
        bundled: Optional[BundledSource] = None,
        config: Optional[CacheConfig] = None,
        supervisor: Optional[TaskSupervisor] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize orchestrator.

        Args:
            store: Cache store holding remote-confirmed payloads
            remote: The authoritative source
            bundled: Content shipped with the application (None if there is none)
            config: Configuration providing per-resource TTLs
            supervisor: Task supervisor for fetches and background work
            clock: Callable returning epoch millis (defaults to the store's clock)
        """
        self.store = store
        self.remote = remote
        self.bundled = bundled
        self.config = config or CacheConfig()
        self.supervisor = supervisor or TaskSupervisor()
        self.clock = clock or store.clock
        self.notifier = UpdateNotifier(spawn=self.supervisor.spawn)

    @classmethod
    def from_config(cls, config: Optional[CacheConfig] = None) -> "SyncOrchestrator":
        """Create an orchestrator with file cache, bundled and remote sources.

        Args:
            config: Cache configuration (uses global if None)

        Returns:
            SyncOrchestrator instance
        """
        config = config or get_global_config()
        return cls(
            store=FileCacheStore.from_config(config),
            remote=RemoteSource(config.remote_base_url, suffix=config.resource_suffix),
            bundled=BundledSource(
                config.bundled_base_path, suffix=config.resource_suffix
            ),
            config=config,
        )

    def subscribe(self, callback: UpdateCallback) -> Callable[[], None]:
        """Subscribe to update notifications.

        Args:
            callback: Called with an UpdateEvent when refreshed content changed

        Returns:
            Function that removes the subscription
        """
        return self.notifier.subscribe(callback)

    # =========================================================================
    # Read contract
    # =========================================================================

    async def load(self, resource_id: str) -> ContentPayload:
        """Get content for a resource.

        Args:
            resource_id: Resource to load

        Returns:
            The best payload currently available

        Raises:
            ContentUnavailable: If no cache entry, bundled copy or remote
                copy could be obtained
        """
        validate_resource_id(resource_id)

        entry = self.store.read(resource_id)
        if entry is not None and entry.is_fresh(self.clock()):
            logger.debug(f"Serving '{resource_id}' from cache")
            self._schedule_revalidation(resource_id, entry.payload)
            return entry.payload

        bundled = self._read_bundled(resource_id)
        if bundled is not None:
            logger.debug(f"Serving bundled '{resource_id}'")
            reference = entry.payload if entry is not None else bundled
            self._schedule_revalidation(resource_id, reference)
            return bundled

        try:
            return await self._fetch_and_store(resource_id)
        except (TransportError, ParseError) as e:
            if entry is not None:
                logger.warning(f"Using stale cache for '{resource_id}': {e}")
                return entry.payload
            raise ContentUnavailable(resource_id) from e

    async def force_refresh(self, resource_id: str) -> Optional[ContentPayload]:
        """Fetch a resource from the remote source, ignoring freshness.

        On success the cache is overwritten regardless of version and an
        update notification is always emitted.

        Args:
            resource_id: Resource to refresh

        Returns:
            The fetched payload, or None if the fetch failed (the cache is
            left untouched)
        """
        validate_resource_id(resource_id)
        logger.info(f"Force refreshing '{resource_id}'")

        try:
            payload = await asyncio.shield(self._fetch(resource_id))
        except (TransportError, ParseError) as e:
            logger.warning(f"Force refresh of '{resource_id}' failed: {e}")
            return None

        await self._persist(resource_id, payload)
        self.notifier.emit(UpdateEvent(resource_id, payload, forced=True))
        return payload

    def clear_cache(self, resource_id: Optional[str] = None) -> None:
        """Remove cached content.

        Args:
            resource_id: Resource to clear; None clears every entry and
                every cached listing
        """
        if resource_id is None:
            self.store.invalidate_all()
        else:
            self.store.invalidate(resource_id)
        logger.info(f"Cache cleared ({resource_id or 'all resources'})")

    async def list_resources(
        self, prefix: str = "", force_refresh: bool = False
    ) -> List[str]:
        """List the resource ids the remote source offers under a prefix.

        Listings are cached for ``config.listing_ttl`` seconds. When the
        cached listing is missing, stale or ``force_refresh`` is set, the
        remote source is listed and the cache updated. If that fails, a
        stale listing is returned as a last resort.

        Args:
            prefix: Directory of resources, e.g. ``"rules"`` ("" for the top level)
            force_refresh: Ignore a fresh cached listing

        Returns:
            Naturally sorted resource ids, each loadable with ``load()``

        Raises:
            ContentUnavailable: If no listing is cached and the remote
                listing fails
        """
        prefix = prefix.strip("/")
        if prefix:
            validate_resource_id(prefix)

        cached = self.store.read_listing(prefix)
        if (
            cached is not None
            and not force_refresh
            and cached.is_fresh(self.clock())
        ):
            logger.debug(f"Serving listing '{prefix}' from cache")
            return list(cached.resource_ids)

        try:
            resource_ids = await asyncio.shield(
                self.supervisor.fetch(
                    f"{LISTING_FETCH_KEY}{prefix}",
                    lambda: self.remote.list_resources(prefix),
                )
            )
        except TransportError as e:
            if cached is not None:
                logger.warning(f"Using stale listing for '{prefix}': {e}")
                return list(cached.resource_ids)
            raise ContentUnavailable(
                prefix, f"Could not list resources under '{prefix or '/'}'"
            ) from e

        await asyncio.to_thread(
            self.store.write_listing, prefix, resource_ids, self.config.listing_ttl
        )
        return list(resource_ids)

    # =========================================================================
    # Diagnostics and lifecycle
    # =========================================================================

    def cache_info(self, resource_id: str) -> Optional[Dict[str, Any]]:
        return self.store.info(resource_id)

    def cache_stats(self) -> CacheStats:
        return self.store.stats()

    async def drain(self) -> None:
        """Wait for outstanding fetches, revalidations and async subscribers."""
        if self.supervisor.pending:
            logger.debug(f"Waiting for {self.supervisor.pending} background tasks")
        await self.supervisor.drain()

    # =========================================================================
    # Internals
    # =========================================================================

    def _fetch(self, resource_id: str) -> asyncio.Task:
        return self.supervisor.fetch(
            resource_id, lambda: self.remote.fetch(resource_id)
        )

    async def _fetch_and_store(self, resource_id: str) -> ContentPayload:
        logger.info(f"No local content for '{resource_id}', fetching remote")
        payload = await asyncio.shield(self._fetch(resource_id))
        await self._persist(resource_id, payload)
        return payload

    def _schedule_revalidation(
        self, resource_id: str, reference: ContentPayload
    ) -> None:
        if self.supervisor.in_flight(resource_id):
            logger.debug(f"Fetch for '{resource_id}' already in flight")
            return
        fetch_task = self._fetch(resource_id)
        self.supervisor.spawn(
            self._revalidate(resource_id, reference, fetch_task),
            name=f"revalidate:{resource_id}",
        )

    async def _revalidate(
        self,
        resource_id: str,
        reference: ContentPayload,
        fetch_task: asyncio.Task,
    ) -> None:
        try:
            fetched = await asyncio.shield(fetch_task)
        except (TransportError, ParseError) as e:
            logger.warning(
                f"Background revalidation of '{resource_id}' failed, "
                f"keeping current content: {e}"
            )
            return

        # Persist even when unchanged so the TTL window restarts
        await self._persist(resource_id, fetched)

        if is_newer(fetched, reference):
            self.notifier.emit(UpdateEvent(resource_id, fetched))
        else:
            logger.debug(f"'{resource_id}' is up to date (version {fetched.version})")

    async def _persist(self, resource_id: str, payload: ContentPayload) -> None:
        # Off the loop: a file store may wait on the index lock
        await asyncio.to_thread(
            self.store.write,
            resource_id,
            payload,
            self.config.ttl_for(resource_id),
            source_url=self.remote.url_for(resource_id),
        )

    def _read_bundled(self, resource_id: str) -> Optional[ContentPayload]:
        if self.bundled is None:
            return None
        try:
            return self.bundled.get(resource_id)
        except ParseError as e:
            logger.error(f"Ignoring malformed bundled content: {e}")
            return None

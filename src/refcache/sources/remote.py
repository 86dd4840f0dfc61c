"""Content fetched from the remote authority."""

import asyncio
import logging
from typing import List

from refcache.exceptions import TransportError
from refcache.payload import ContentPayload
from refcache.sources.base import ContentSource
from refcache.utils import join_location, natural_sort_key

logger = logging.getLogger(__name__)


class RemoteSource(ContentSource):
    """The authoritative, network-bound source of reference content.

    Reads go through cloudfiles, so the base location may be an ``https://``
    URL (e.g. raw files of a git hosting service) or a ``gs://``/``s3://``
    bucket path. The blocking read runs in a worker thread.
    """

    async def fetch(self, resource_id: str) -> ContentPayload:
        """Fetch the current payload for a resource.

        Args:
            resource_id: Resource to fetch

        Returns:
            The fetched payload

        Raises:
            TransportError: On connectivity failures, error responses or
                missing objects
            ParseError: If the response body is not a valid payload
        """
        url = self.url_for(resource_id)
        logger.debug(f"Fetching '{resource_id}' from {url}")

        try:
            raw = await asyncio.to_thread(self.storage.read_bytes, url)
        except FileNotFoundError as e:
            raise TransportError(f"Remote content not found: {url}") from e
        except Exception as e:
            raise TransportError(f"Failed to fetch {url}: {e}") from e

        return self._parse(raw, url)

    async def list_resources(self, prefix: str = "") -> List[str]:
        """List the resource ids available under a prefix.

        Only files carrying the source's suffix are listed; the suffix is
        stripped and ``prefix`` prepended, so every returned id can be passed
        to ``fetch``. Ids are sorted naturally ("2. Combat" before "10. Magic").

        Args:
            prefix: Directory of resources relative to the base location
                ("" for the base location itself)

        Returns:
            Sorted resource ids

        Raises:
            TransportError: If the listing cannot be obtained
        """
        if self.base_location is None:
            raise ValueError(f"{type(self).__name__} has no base location configured")
        location = (
            join_location(self.base_location, prefix) if prefix else self.base_location
        )
        logger.debug(f"Listing resources under {location}")

        try:
            names = await asyncio.to_thread(self.storage.list_files, location)
        except Exception as e:
            raise TransportError(f"Failed to list {location}: {e}") from e

        base = f"{prefix.strip('/')}/" if prefix else ""
        return [
            f"{base}{name[: len(name) - len(self.suffix)]}"
            for name in sorted(names, key=natural_sort_key)
            if name.endswith(self.suffix) and len(name) > len(self.suffix)
        ]

"""Content shipped with the application."""

import logging
from typing import Optional

from refcache.payload import ContentPayload
from refcache.sources.base import ContentSource

logger = logging.getLogger(__name__)


class BundledSource(ContentSource):
    """Fallback copy of reference content that ships with the application.

    Never expires and never touches the network when its base location is a
    local directory. A source created without a base location has no bundled
    content and always reports it as absent.
    """

    def get(self, resource_id: str) -> Optional[ContentPayload]:
        """Load the bundled payload for a resource.

        Args:
            resource_id: Resource to load

        Returns:
            The bundled payload, or None if nothing is bundled for the resource

        Raises:
            ParseError: If the bundled file exists but is malformed
        """
        if self.base_location is None:
            return None

        path = self.url_for(resource_id)
        try:
            raw = self.storage.read_bytes(path)
        except FileNotFoundError:
            logger.debug(f"No bundled content for '{resource_id}' at {path}")
            return None
        except OSError as e:
            logger.error(f"Cannot read bundled content at {path}: {e}")
            return None

        return self._parse(raw, path)

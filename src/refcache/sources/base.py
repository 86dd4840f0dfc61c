"""Shared behavior of content sources addressed by base location."""

from pathlib import Path
from typing import Optional, Union

import orjson

from refcache.exceptions import ParseError
from refcache.payload import ContentPayload
from refcache.storage import StorageBackend
from refcache.utils import join_location


class ContentSource:
    """A provider of content payloads stored as one JSON file per resource.

    The file for resource ``rid`` lives at ``<base_location>/<rid><suffix>``.
    Subclasses decide how and when the file is read.
    """

    def __init__(
        self,
        base_location: Optional[Union[str, Path]],
        suffix: str = ".json",
        storage: Optional[StorageBackend] = None,
    ):
        """Initialize source.

        Args:
            base_location: Directory, bucket path or URL holding the files
            suffix: Suffix appended to resource ids to form file names
            storage: Storage backend used for reads
        """
        self.base_location = str(base_location) if base_location is not None else None
        self.suffix = suffix
        self.storage = storage or StorageBackend()

    def url_for(self, resource_id: str) -> str:
        """Get the location of a resource's file.

        Args:
            resource_id: Resource id

        Returns:
            Path or URL of the file
        """
        if self.base_location is None:
            raise ValueError(f"{type(self).__name__} has no base location configured")
        return join_location(self.base_location, f"{resource_id}{self.suffix}")

    def _parse(self, raw: bytes, location: str) -> ContentPayload:
        """Decode a payload read from ``location``.

        Raises:
            ParseError: If the content is not JSON or not a payload
        """
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise ParseError(f"Content at {location} is not valid JSON: {e}") from e

        try:
            return ContentPayload.from_dict(data)
        except ParseError as e:
            raise ParseError(f"Content at {location} is not a payload: {e}") from e

"""Content payload model and its JSON wire format."""

from dataclasses import dataclass
from typing import Any, Optional

from typing_extensions import TypedDict

from refcache.exceptions import ParseError

# Keys that belong to the version envelope rather than the body
ENVELOPE_KEYS = ("version", "lastUpdated")


class PayloadRecord(TypedDict):
    """Serialized form of a ContentPayload."""

    version: str
    lastUpdated: int  # epoch millis
    body: Any


class CacheRecord(TypedDict):
    """Serialized form of a cache entry as persisted by a CacheStore."""

    payload: PayloadRecord
    fetchedAt: int  # epoch millis
    expiresAt: Optional[int]  # epoch millis, None when written without a TTL
    sourceUrl: Optional[str]


@dataclass(frozen=True)
class ContentPayload:
    """A versioned bundle of reference records.

    Attributes:
        version: Opaque version label (commit SHA, ISO timestamp, ...)
        last_updated: Epoch milliseconds of the last content change. Producers
            must make this increase whenever the content changes.
        body: The reference data itself, opaque to the cache layer
    """

    version: str
    last_updated: int
    body: Any

    @classmethod
    def from_dict(cls, data: Any) -> "ContentPayload":
        """Build a payload from its decoded JSON form.

        Accepts both the ``{"version", "lastUpdated", "body"}`` envelope and the
        flat form where the records sit next to the version fields, in which
        case every non-envelope key becomes part of the body.

        Args:
            data: Decoded JSON value

        Returns:
            ContentPayload instance

        Raises:
            ParseError: If the value does not look like a payload
        """
        if not isinstance(data, dict):
            raise ParseError(
                f"Payload must be a JSON object, got {type(data).__name__}"
            )

        version = data.get("version")
        if not isinstance(version, str) or not version:
            raise ParseError("Payload 'version' must be a non-empty string")

        last_updated = data.get("lastUpdated")
        if isinstance(last_updated, bool):
            raise ParseError("Payload 'lastUpdated' must be an integer")
        if isinstance(last_updated, float) and last_updated.is_integer():
            last_updated = int(last_updated)
        if not isinstance(last_updated, int):
            raise ParseError("Payload 'lastUpdated' must be an integer")

        if "body" in data:
            body = data["body"]
        else:
            body = {k: v for k, v in data.items() if k not in ENVELOPE_KEYS}

        return cls(version=version, last_updated=last_updated, body=body)

    def to_dict(self) -> PayloadRecord:
        """Serialize to the envelope form."""
        return {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "body": self.body,
        }

"""Providers of content payloads.

- BundledSource: content shipped with the application
- RemoteSource: the authoritative remote copy
"""

from refcache.sources.base import ContentSource
from refcache.sources.bundled import BundledSource
from refcache.sources.remote import RemoteSource

__all__ = ["ContentSource", "BundledSource", "RemoteSource"]

"""Storage backend for reading content from local or remote locations.

This module provides abstraction for file reads and directory listings,
supporting both local paths and cloud or web locations (via cloudfiles).
"""

from pathlib import Path
from typing import List, Tuple, Union

from refcache.utils import is_cloud_path


def _split_location(path: str) -> Tuple[str, str]:
    """Split a cloud path into (directory, filename)."""
    parts = path.rsplit("/", 1)
    if len(parts) == 2:
        return parts[0], parts[1]
    return "", parts[0]


class StorageBackend:
    """Handles content reads for refcache sources.

    Provides a unified interface for local and cloud storage:
    - Raw byte reads
    - Directory listings

    Examples:
        >>> storage = StorageBackend()
        >>> raw = storage.read_bytes('https://example.com/content/perks.json')
        >>> names = storage.list_files('gs://bucket/content/rules')
    """

    def read_bytes(self, path: Union[str, Path]) -> bytes:
        """Read a file's raw content (local or cloud).

        Args:
            path: File path or URL

        Returns:
            File content

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = str(path)
        if is_cloud_path(path):
            from cloudfiles import CloudFiles

            dir_path, filename = _split_location(path)
            cf = CloudFiles(dir_path) if dir_path else CloudFiles(path)
            content = cf.get(filename)
            if content is None:
                raise FileNotFoundError(path)
            return content
        else:
            with open(path, "rb") as f:
                return f.read()

    def list_files(self, path: Union[str, Path]) -> List[str]:
        """List the files directly inside a directory (local or cloud).

        Args:
            path: Directory path or URL

        Returns:
            File names relative to ``path``

        Raises:
            FileNotFoundError: If a local directory does not exist
        """
        path = str(path)
        if is_cloud_path(path):
            from cloudfiles import CloudFiles

            cf = CloudFiles(path)
            return [name for name in cf.list(flat=True) if not name.endswith("/")]
        else:
            return [p.name for p in Path(path).iterdir() if p.is_file()]

"""Archival storage interface."""

from abc import ABC, abstractmethod
from typing import BinaryIO


class StorageError(Exception):
    """Upload to archival storage failed."""


class ArchiveStorage(ABC):
    """Blob storage used to export credential artifacts."""

    @abstractmethod
    async def upload(self, stream: BinaryIO, filename: str) -> str:
        """
        Upload a file.

        Args:
            stream: Readable binary stream with the file contents.
            filename: Name to store the file under.

        Returns:
            Locator string (usually a URL) of the stored file.
        """
        pass

    async def aclose(self) -> None:
        """Release any held resources."""
        pass


def strip_locator_prefix(locator: str, prefix: str) -> str:
    """Derive the short reference token from a storage locator."""
    if prefix and locator.startswith(prefix):
        return locator[len(prefix):]
    return locator

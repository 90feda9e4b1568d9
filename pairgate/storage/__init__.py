"""Archival storage backends."""

from pairgate.config.schema import Config
from pairgate.storage.base import ArchiveStorage, StorageError, strip_locator_prefix
from pairgate.storage.http import HttpArchive
from pairgate.storage.local import LocalArchive


def create_storage(config: Config) -> ArchiveStorage:
    """Build the storage backend selected in the config."""
    if config.storage.backend == "local":
        return LocalArchive(config.archive_path)
    return HttpArchive(
        upload_url=config.storage.upload_url,
        api_key=config.storage.api_key,
        timeout=config.storage.timeout_seconds,
    )


__all__ = [
    "ArchiveStorage",
    "HttpArchive",
    "LocalArchive",
    "StorageError",
    "create_storage",
    "strip_locator_prefix",
]

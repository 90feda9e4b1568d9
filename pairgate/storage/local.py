"""Local directory archive, for development and single-host setups."""

import shutil
from pathlib import Path
from typing import BinaryIO

from loguru import logger

from pairgate.storage.base import ArchiveStorage, StorageError
from pairgate.utils.helpers import ensure_dir, make_session_id


class LocalArchive(ArchiveStorage):
    """Copies uploads into a directory and returns ``<base_url><key>`` locators."""

    def __init__(self, root: Path, base_url: str = ""):
        self.root = root
        self.base_url = base_url or root.resolve().as_uri() + "/"

    async def upload(self, stream: BinaryIO, filename: str) -> str:
        key = make_session_id()
        target_dir = ensure_dir(self.root / key)
        try:
            with open(target_dir / Path(filename).name, "wb") as f:
                shutil.copyfileobj(stream, f)
        except OSError as e:
            raise StorageError(f"Could not archive {filename}: {e}") from e
        logger.info(f"Archived {filename} under {target_dir}")
        return f"{self.base_url}{key}"

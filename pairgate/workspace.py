"""Per-session workspace directories."""

import shutil
from pathlib import Path

from loguru import logger


class Workspace:
    """
    A temporary directory holding one session's credential state.

    The path is derived from the session id. Removal is idempotent: removing
    an absent directory is a no-op that returns False.
    """

    def __init__(self, root: Path, session_id: str):
        self.root = root
        self.session_id = session_id
        self.path = root / session_id
        self.removals = 0

    def __repr__(self) -> str:
        return f"Workspace({self.path})"

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def create(self) -> Path:
        """Create the directory (and the root) if missing."""
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def file(self, name: str) -> Path:
        """Path of a file inside the workspace."""
        return self.path / name

    def remove(self) -> bool:
        """Remove the directory recursively. Returns True if something was removed."""
        if not self.path.exists():
            return False
        shutil.rmtree(self.path, ignore_errors=True)
        self.removals += 1
        logger.debug(f"Removed workspace {self.path}")
        return True

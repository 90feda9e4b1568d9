"""Multi-file credential persistence inside a session workspace."""

import json
import re
import secrets
from pathlib import Path
from typing import Any

from filelock import FileLock
from loguru import logger

from pairgate.workspace import Workspace

CREDS_FILENAME = "creds.json"


def _safe_key_name(category: str, key_id: str) -> str:
    """File name for a signal key, keeping to a portable alphabet."""
    name = f"{category}-{key_id}"
    return re.sub(r"[^A-Za-z0-9._-]", "_", name) + ".json"


def _read_json_file(path: Path) -> dict[str, Any] | None:
    """Read a JSON file, returning None when missing or unreadable."""
    try:
        if path.exists():
            return json.loads(path.read_text())
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Error reading {path}: {e}")
    return None


def _write_json_file(path: Path, data: dict[str, Any]) -> None:
    """Write a JSON file with atomic rename. The directory must exist."""
    tmp_path = path.with_suffix(f".{secrets.token_hex(4)}.tmp")
    tmp_path.write_text(json.dumps(data, indent=2) + "\n")
    tmp_path.chmod(0o600)
    tmp_path.rename(path)


class MultiFileAuthState:
    """
    Credentials and signal keys stored as one JSON file each.

    ``creds.json`` is the credential artifact the exporter uploads once the
    session is registered.
    """

    def __init__(self, workspace: Workspace, creds_filename: str = CREDS_FILENAME):
        self.workspace = workspace
        self.creds_path = workspace.file(creds_filename)
        self.lock_path = self.creds_path.with_suffix(".lock")
        self.lock_timeout = 10.0
        self.creds: dict[str, Any] = {}

    @property
    def registered(self) -> bool:
        return bool(self.creds.get("registered"))

    def load(self) -> dict[str, Any]:
        """Create the workspace if needed and load stored credentials."""
        self.workspace.create()
        self.creds = _read_json_file(self.creds_path) or {}
        return self.creds

    def save_creds(self, update: dict[str, Any]) -> None:
        """Merge a credentials update and persist it."""
        with self._lock():
            self.creds.update(update)
            _write_json_file(self.creds_path, self.creds)

    def _lock(self) -> FileLock:
        """Lock shared by every write into the workspace."""
        return FileLock(self.lock_path, timeout=self.lock_timeout)

    def read_key(self, category: str, key_id: str) -> dict[str, Any] | None:
        return _read_json_file(self.workspace.file(_safe_key_name(category, key_id)))

    def save_key(self, category: str, key_id: str, value: dict[str, Any] | None) -> None:
        """Persist a signal key; a None value deletes it."""
        with self._lock():
            self._write_key(category, key_id, value)

    def save_keys(self, keys: dict[str, dict[str, dict[str, Any] | None]]) -> None:
        """Persist a batch of signal keys by category under one lock."""
        with self._lock():
            for category, entries in keys.items():
                for key_id, value in (entries or {}).items():
                    self._write_key(category, key_id, value)

    def _write_key(self, category: str, key_id: str, value: dict[str, Any] | None) -> None:
        path = self.workspace.file(_safe_key_name(category, key_id))
        if value is None:
            path.unlink(missing_ok=True)
            return
        _write_json_file(path, value)

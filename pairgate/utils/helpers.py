"""Small shared helpers."""

import secrets
from pathlib import Path

# Session ids double as directory names, so keep to a filesystem-safe alphabet.
SESSION_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
SESSION_ID_LENGTH = 12


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def make_session_id(length: int = SESSION_ID_LENGTH) -> str:
    """Generate a random session id."""
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(length))


def mask_phone_number(number: str) -> str:
    """Mask all but the last four digits of a phone number for display."""
    if len(number) <= 4:
        return number
    return "*" * (len(number) - 4) + number[-4:]

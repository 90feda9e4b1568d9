"""Connection events emitted by transport sessions."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ErrorInfo:
    """Reason attached to a connection close."""
    status_code: int
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ErrorInfo | None":
        """Build from a bridge payload; missing or malformed data yields None."""
        if not isinstance(data, dict):
            return None
        try:
            status_code = int(data["statusCode"])
        except (KeyError, TypeError, ValueError):
            return None
        return cls(status_code=status_code, message=str(data.get("message", "")))


@dataclass(frozen=True)
class ConnectionOpen:
    """The messaging connection is open and authenticated."""


@dataclass(frozen=True)
class ConnectionClose:
    """The messaging connection closed."""
    reason: ErrorInfo | None = None


ConnectionEvent = ConnectionOpen | ConnectionClose

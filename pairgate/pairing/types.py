"""Pairing types and data structures."""

from dataclasses import dataclass, field
from enum import Enum
import time

from loguru import logger

from pairgate.workspace import Workspace


class SessionState(str, Enum):
    """Session lifecycle states."""
    AWAITING_CONNECTION = "awaiting_connection"  # Code issued, waiting for the device to link
    OPEN = "open"                                # Connection opened
    EXPORTING = "exporting"                      # Uploading credentials and notifying the user
    RETRYING = "retrying"                        # Transient close, a fresh attempt follows
    FAILED = "failed"                            # Terminal failure
    COMPLETED = "completed"                      # Credentials exported


class SessionOutcome(str, Enum):
    """Final result of a pairing request, delivered to the host."""
    EXPORTED = "exported"
    AUTH_FAILED = "auth_failed"
    EXPORT_FAILED = "export_failed"
    RETRIES_EXHAUSTED = "retries_exhausted"
    ERROR = "error"
    REJECTED = "rejected"  # Invalid input, no session was started


@dataclass(frozen=True)
class PairingReply:
    """The single reply sent back to whoever asked for a pairing code."""
    status: int
    code: str

    @property
    def ok(self) -> bool:
        return self.status < 400

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code}


@dataclass
class PairingSession:
    """One pairing attempt, from code request to terminal outcome."""
    session_id: str
    phone_number: str
    workspace: Workspace
    attempt: int = 1
    registered: bool = False
    state: SessionState = SessionState.AWAITING_CONNECTION
    pairing_code: str | None = None
    user_id: str | None = None
    started_at: float = field(default_factory=time.time)

    def transition(self, state: SessionState) -> None:
        logger.debug(f"Session {self.session_id}: {self.state.value} -> {state.value}")
        self.state = state

"""Session pairing and lifecycle."""

from pairgate.pairing.errors import (
    AuthenticationFailure,
    DeliveryFailed,
    ExportError,
    InvalidInput,
    MissingCredentials,
    PairingError,
    RetriesExhausted,
    TransientConnectionError,
    UnexpectedError,
)
from pairgate.pairing.requestor import normalize_phone_number
from pairgate.pairing.service import PairingHandle, PairingService
from pairgate.pairing.types import (
    PairingReply,
    PairingSession,
    SessionOutcome,
    SessionState,
)
from pairgate.transport.events import ConnectionClose, ConnectionOpen, ErrorInfo

__all__ = [
    "AuthenticationFailure",
    "ConnectionClose",
    "ConnectionOpen",
    "DeliveryFailed",
    "ErrorInfo",
    "ExportError",
    "InvalidInput",
    "MissingCredentials",
    "PairingError",
    "PairingHandle",
    "PairingReply",
    "PairingService",
    "PairingSession",
    "RetriesExhausted",
    "SessionOutcome",
    "SessionState",
    "TransientConnectionError",
    "UnexpectedError",
    "normalize_phone_number",
]

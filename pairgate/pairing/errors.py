"""Pairing error taxonomy.

Each error carries the reply it maps to, so the request boundary can turn
any fault into exactly one ``PairingReply``.
"""


class PairingError(Exception):
    """Base class for faults surfaced to the pairing caller."""

    status: int = 503
    reply_message: str = "❗ Service currently unavailable. Please try again."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.reply_message)
        self.detail = detail


class InvalidInput(PairingError):
    """The phone number normalized to an empty string."""

    status = 400
    reply_message = "❗ Phone number is required."


class TransientConnectionError(PairingError):
    """The connection closed for a reason worth retrying."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(detail)
        self.status_code = status_code


class AuthenticationFailure(PairingError):
    """The messaging service rejected the session credentials."""

    status = 401
    reply_message = "❗ Authentication failed. Please try again."


class ExportError(PairingError):
    """Credential export failed after the connection opened."""

    status = 500


class MissingCredentials(ExportError):
    """The credential artifact never appeared in the workspace."""

    reply_message = "❗ Connection failed: Credentials file not found."


class DeliveryFailed(ExportError):
    """Archival upload or message delivery failed."""

    reply_message = "❗ Failed to upload or send messages."


class RetriesExhausted(PairingError):
    """Transient disconnects kept happening past the retry ceiling."""

    def __init__(self, attempts: int, detail: str = ""):
        super().__init__(detail or f"gave up after {attempts} attempts")
        self.attempts = attempts


class UnexpectedError(PairingError):
    """Any other failure while setting up a session."""

"""Retry/termination policy for connection closes."""

from dataclasses import dataclass
from enum import Enum

from pairgate.config.schema import PairingConfig
from pairgate.transport.events import ErrorInfo


class CloseAction(str, Enum):
    """What to do about a connection close."""
    IGNORE = "ignore"  # No reason attached
    RETRY = "retry"    # Transient, start a fresh attempt
    FAIL = "fail"      # Authentication rejected, terminal


@dataclass
class RetryPolicy:
    """
    Classifies close reasons and paces retries.

    Classification is by status code only: the unauthorized code fails the
    session, anything else retries, and a close without a reason is ignored.
    """
    unauthorized_status: int = 401
    max_retries: int = 5
    backoff_seconds: float = 2.0
    backoff_factor: float = 2.0
    backoff_max_seconds: float = 30.0

    @classmethod
    def from_config(cls, config: PairingConfig) -> "RetryPolicy":
        return cls(
            unauthorized_status=config.unauthorized_status,
            max_retries=config.max_retries,
            backoff_seconds=config.retry_backoff_seconds,
            backoff_factor=config.retry_backoff_factor,
            backoff_max_seconds=config.retry_backoff_max_seconds,
        )

    def classify(self, reason: ErrorInfo | None) -> CloseAction:
        if reason is None:
            return CloseAction.IGNORE
        if reason.status_code == self.unauthorized_status:
            return CloseAction.FAIL
        return CloseAction.RETRY

    def backoff(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (1-based)."""
        delay = self.backoff_seconds * self.backoff_factor ** max(attempt - 1, 0)
        return min(delay, self.backoff_max_seconds)

    def can_retry(self, attempt: int) -> bool:
        """Whether another attempt may follow attempt number ``attempt``."""
        return attempt <= self.max_retries

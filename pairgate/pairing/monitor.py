"""Lifecycle monitor: drives one pairing attempt from its connection events."""

import asyncio

from loguru import logger

from pairgate.pairing.errors import AuthenticationFailure, RetriesExhausted, UnexpectedError
from pairgate.pairing.exporter import CredentialExporter
from pairgate.pairing.policy import CloseAction, RetryPolicy
from pairgate.pairing.reply import ReplyChannel
from pairgate.pairing.types import PairingSession, SessionOutcome, SessionState
from pairgate.transport.base import TransportSession
from pairgate.transport.events import ConnectionClose, ConnectionEvent, ConnectionOpen


class LifecycleMonitor:
    """
    Consumes connection events for one attempt, strictly one at a time.

    Events are queued as the transport emits them. An Open event runs the
    whole export before the next event is looked at, and nothing is looked
    at once the attempt is terminal.

    ``run`` returns the terminal SessionOutcome, or None when the attempt
    closed transiently and a fresh attempt should follow (the backoff has
    already been waited out by then).
    """

    def __init__(
        self,
        session: PairingSession,
        transport_session: TransportSession,
        exporter: CredentialExporter,
        policy: RetryPolicy,
        reply: ReplyChannel,
    ):
        self.session = session
        self.transport_session = transport_session
        self.exporter = exporter
        self.policy = policy
        self.reply = reply
        self._events: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        transport_session.subscribe(self._events.put_nowait)
        transport_session.on_credentials_update(self._on_credentials_update)

    async def run(self) -> SessionOutcome | None:
        while True:
            event = await self._events.get()
            try:
                done, outcome = await self.handle(event)
            except Exception as e:
                logger.exception(f"Error handling {event} for session {self.session.session_id}: {e}")
                error = UnexpectedError(str(e))
                self.reply.send(error.status, error.reply_message)
                self.session.transition(SessionState.FAILED)
                await self.teardown()
                return SessionOutcome.ERROR
            if done:
                return outcome

    async def handle(self, event: ConnectionEvent) -> tuple[bool, SessionOutcome | None]:
        """Apply one event. Returns (attempt finished, outcome)."""
        if self.session.state != SessionState.AWAITING_CONNECTION:
            logger.debug(f"Session {self.session.session_id} is {self.session.state.value}, ignoring {event}")
            return False, None

        if isinstance(event, ConnectionOpen):
            self.session.transition(SessionState.OPEN)
            logger.info(f"Connection open for session {self.session.session_id}")
            return True, await self.exporter.export(self.session, self.transport_session, self.reply)

        if isinstance(event, ConnectionClose):
            return await self._on_close(event)

        logger.warning(f"Unknown connection event: {event!r}")
        return False, None

    async def _on_close(self, event: ConnectionClose) -> tuple[bool, SessionOutcome | None]:
        reason = event.reason
        action = self.policy.classify(reason)

        if action == CloseAction.IGNORE:
            logger.debug(f"Connection closed without a reason for session {self.session.session_id}")
            return False, None

        if action == CloseAction.FAIL:
            logger.warning(f"Authentication failed for session {self.session.session_id}: {reason.message}")
            self.session.transition(SessionState.FAILED)
            error = AuthenticationFailure(reason.message)
            self.reply.send(error.status, error.reply_message)
            await self.teardown()
            return True, SessionOutcome.AUTH_FAILED

        attempt = self.session.attempt
        logger.info(
            f"Connection closed for session {self.session.session_id} "
            f"({reason.status_code}: {reason.message}), attempt {attempt}"
        )
        self.session.transition(SessionState.RETRYING)
        await self.teardown()

        if not self.policy.can_retry(attempt):
            error = RetriesExhausted(attempt)
            logger.error(f"Giving up on session {self.session.session_id}: {error}")
            self.session.transition(SessionState.FAILED)
            self.reply.send(error.status, error.reply_message)
            return True, SessionOutcome.RETRIES_EXHAUSTED

        delay = self.policy.backoff(attempt)
        logger.info(f"Retrying pairing in {delay:.1f}s")
        await asyncio.sleep(delay)
        return True, None

    async def teardown(self) -> None:
        """Close the transport session and remove the workspace. Idempotent, never raises."""
        try:
            await self.transport_session.close_quietly()
        finally:
            self.session.workspace.remove()

    def _on_credentials_update(self, creds: dict) -> None:
        if creds.get("registered") and not self.session.registered:
            self.session.registered = True
            logger.info(f"Credentials registered for session {self.session.session_id}")

"""Pairing service: runs pairing flows and reports their outcomes to the host."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from pairgate.config.schema import Config
from pairgate.pairing.errors import InvalidInput, UnexpectedError
from pairgate.pairing.exporter import CredentialExporter
from pairgate.pairing.monitor import LifecycleMonitor
from pairgate.pairing.policy import RetryPolicy
from pairgate.pairing.reply import ReplyChannel
from pairgate.pairing.requestor import PairingRequestor, normalize_phone_number
from pairgate.pairing.types import PairingReply, PairingSession, SessionOutcome
from pairgate.storage.base import ArchiveStorage
from pairgate.transport.base import Transport
from pairgate.utils.helpers import make_session_id, mask_phone_number

CompletionCallback = Callable[[SessionOutcome], Awaitable[None]]


@dataclass
class PairingHandle:
    """A running pairing flow: its single reply and its eventual outcome."""
    reply: ReplyChannel
    task: asyncio.Future[SessionOutcome]

    async def wait_reply(self) -> PairingReply:
        return await self.reply.wait()

    async def wait_outcome(self) -> SessionOutcome:
        return await asyncio.shield(self.task)


class PairingService:
    """
    Runs pairing flows and tracks the sessions in flight.

    Each request gets its own task. Terminal outcomes are handed to
    ``on_complete``; the service never stops the process on its own.
    """

    def __init__(
        self,
        transport: Transport,
        storage: ArchiveStorage,
        config: Config,
        on_complete: CompletionCallback | None = None,
        id_factory: Callable[[], str] = make_session_id,
    ):
        self.transport = transport
        self.storage = storage
        self.config = config
        self.on_complete = on_complete
        self.id_factory = id_factory

        self.requestor = PairingRequestor(
            transport,
            temp_root=config.temp_path,
            settle_seconds=config.pairing.settle_seconds,
        )
        self.exporter = CredentialExporter(
            storage,
            export_config=config.export,
            branding=config.branding,
            locator_prefix=config.storage.locator_prefix,
        )
        self.policy = RetryPolicy.from_config(config.pairing)

        # Current attempt of every running flow, by session_id
        self.sessions: dict[str, PairingSession] = {}
        self._tasks: set[asyncio.Task] = set()

    def start(self, raw_number: str | None) -> PairingHandle:
        """
        Start a pairing flow.

        Invalid input is answered right away and no session is created.
        """
        reply = ReplyChannel()
        try:
            number = normalize_phone_number(raw_number)
        except InvalidInput as e:
            logger.info(f"Rejected pairing request: {e}")
            reply.send(e.status, e.reply_message)
            done: asyncio.Future[SessionOutcome] = asyncio.get_running_loop().create_future()
            done.set_result(SessionOutcome.REJECTED)
            return PairingHandle(reply=reply, task=done)

        task = asyncio.create_task(self._supervise(number, reply))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return PairingHandle(reply=reply, task=task)

    async def pair(self, raw_number: str | None) -> PairingReply:
        """Start a pairing flow and wait for its reply."""
        return await self.start(raw_number).wait_reply()

    def list_sessions(self) -> list[dict[str, Any]]:
        """Summaries of the sessions in flight."""
        return [
            {
                "session_id": s.session_id,
                "phone_number": mask_phone_number(s.phone_number),
                "state": s.state.value,
                "attempt": s.attempt,
                "registered": s.registered,
                "started_at": s.started_at,
            }
            for s in self.sessions.values()
        ]

    async def stop(self) -> None:
        """Cancel all running flows and wait for their cleanup."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Pairing service stopped")

    async def _supervise(self, number: str, reply: ReplyChannel) -> SessionOutcome:
        try:
            outcome = await self._run(number, reply)
        except asyncio.CancelledError:
            reply.send(UnexpectedError.status, UnexpectedError.reply_message)
            raise
        except Exception as e:
            logger.exception(f"Pairing for {mask_phone_number(number)} failed: {e}")
            reply.send(UnexpectedError.status, UnexpectedError.reply_message)
            outcome = SessionOutcome.ERROR

        logger.info(f"Pairing for {mask_phone_number(number)} finished: {outcome.value}")
        if self.on_complete:
            try:
                await self.on_complete(outcome)
            except Exception as e:
                logger.error(f"Completion callback failed: {e}")
        return outcome

    async def _run(self, number: str, reply: ReplyChannel) -> SessionOutcome:
        attempt = 1
        while True:
            session_id = self.id_factory()
            try:
                session, transport_session = await self.requestor.start(number, session_id, attempt)
            except Exception as e:
                logger.exception(f"Failed to start pairing session {session_id}: {e}")
                error = UnexpectedError(str(e))
                reply.send(error.status, error.reply_message)
                return SessionOutcome.ERROR

            self.sessions[session_id] = session
            monitor = LifecycleMonitor(session, transport_session, self.exporter, self.policy, reply)
            try:
                if session.pairing_code is not None and not reply.send(200, session.pairing_code):
                    logger.warning(
                        f"Reply already sent; pairing code {session.pairing_code} "
                        f"for attempt {attempt} was not delivered to the caller"
                    )
                outcome = await monitor.run()
            finally:
                self.sessions.pop(session_id, None)
                if session.workspace.exists:
                    await monitor.teardown()

            if outcome is not None:
                return outcome
            attempt += 1

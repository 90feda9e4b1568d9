"""Pairing requestor: normalize the number, open a session, request a code."""

import re
from pathlib import Path

from loguru import logger

from pairgate.pairing.errors import InvalidInput
from pairgate.pairing.types import PairingSession
from pairgate.transport.base import Transport, TransportSession
from pairgate.utils.helpers import mask_phone_number
from pairgate.workspace import Workspace

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_phone_number(raw: str | None) -> str:
    """Strip everything but ASCII digits. Raises InvalidInput if nothing is left."""
    number = _NON_DIGITS.sub("", raw or "")
    if not number:
        raise InvalidInput(f"no digits in {raw!r}")
    return number


class PairingRequestor:
    """Opens protocol sessions in fresh workspaces and requests pairing codes."""

    def __init__(self, transport: Transport, temp_root: Path, settle_seconds: float = 1.5):
        self.transport = transport
        self.temp_root = temp_root
        self.settle_seconds = settle_seconds

    async def start(
        self,
        phone_number: str,
        session_id: str,
        attempt: int = 1,
    ) -> tuple[PairingSession, TransportSession]:
        """
        Open a session for an already normalized number.

        The pairing code is stored on the returned session; it stays None if
        the stored credentials were already registered.
        """
        workspace = Workspace(self.temp_root, session_id)
        workspace.create()
        session = PairingSession(
            session_id=session_id,
            phone_number=phone_number,
            workspace=workspace,
            attempt=attempt,
        )

        transport_session: TransportSession | None = None
        try:
            transport_session = await self.transport.open_session(workspace)
            session.registered = transport_session.registered

            if not session.registered:
                await transport_session.wait_ready(self.settle_seconds)
                session.pairing_code = await transport_session.request_pairing_code(phone_number)
                logger.info(
                    f"Pairing code issued for {mask_phone_number(phone_number)} "
                    f"(session {session_id}, attempt {attempt})"
                )
            else:
                logger.info(f"Session {session_id} already registered, skipping pairing code")
        except BaseException:
            try:
                if transport_session is not None:
                    await transport_session.close_quietly()
            finally:
                workspace.remove()
            raise

        return session, transport_session

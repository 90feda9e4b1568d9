"""One-shot reply channel back to the pairing caller."""

import asyncio

from loguru import logger

from pairgate.pairing.types import PairingReply


class ReplyChannel:
    """
    Delivers at most one PairingReply per originating request.

    Every code path that might answer the caller (pairing code, export
    success or failure, auth failure, retries exhausted) goes through
    ``send``. The first call wins; later calls are dropped and return False.
    The check and the set happen without an await in between, so the guard
    holds under asyncio scheduling.
    """

    def __init__(self):
        self._future: asyncio.Future[PairingReply] = asyncio.get_running_loop().create_future()

    @property
    def sent(self) -> bool:
        return self._future.done()

    @property
    def reply(self) -> PairingReply | None:
        if self._future.done() and not self._future.cancelled():
            return self._future.result()
        return None

    def send(self, status: int, code: str) -> bool:
        """Send the reply if none has been sent yet."""
        if self._future.done():
            logger.debug(f"Reply already sent, dropping {status}: {code}")
            return False
        self._future.set_result(PairingReply(status=status, code=code))
        return True

    async def wait(self) -> PairingReply:
        """Wait for the reply."""
        return await asyncio.shield(self._future)

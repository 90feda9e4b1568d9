"""Base interface for messaging transports."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from pairgate.transport.events import ConnectionEvent
from pairgate.workspace import Workspace

ConnectionListener = Callable[[ConnectionEvent], None]
CredentialsListener = Callable[[dict[str, Any]], None]


@dataclass
class LinkPreview:
    """Link-preview card attached to a text message."""
    title: str
    source_url: str
    thumbnail_url: str = ""
    media_type: int = 1
    render_larger_thumbnail: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "thumbnailUrl": self.thumbnail_url,
            "sourceUrl": self.source_url,
            "mediaType": self.media_type,
            "renderLargerThumbnail": self.render_larger_thumbnail,
        }


@dataclass
class OutgoingMessage:
    """A message to send through an open session."""
    text: str
    link_preview: LinkPreview | None = None

    def to_dict(self) -> dict[str, Any]:
        content: dict[str, Any] = {"text": self.text}
        if self.link_preview:
            content["contextInfo"] = {"externalAdReply": self.link_preview.to_dict()}
        return content


@dataclass(frozen=True)
class SentMessage:
    """Handle of a delivered message, usable for quoting."""
    id: str
    remote_jid: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


class TransportSession(ABC):
    """
    One protocol session bound to a workspace.

    Connection events are pushed to subscribers. Events that arrive before
    anyone subscribed are buffered and replayed to the first subscriber.
    """

    def __init__(self, workspace: Workspace):
        self.workspace = workspace
        self._listeners: list[ConnectionListener] = []
        self._credential_listeners: list[CredentialsListener] = []
        self._pending: list[ConnectionEvent] = []

    @property
    @abstractmethod
    def registered(self) -> bool:
        """Whether the stored credentials already authenticate a device."""
        pass

    @property
    @abstractmethod
    def user_id(self) -> str | None:
        """Identifier of the authenticated account, once the connection is open."""
        pass

    async def wait_ready(self, timeout: float) -> bool:
        """
        Wait until the session can take a pairing-code request.

        Transports without a readiness signal just wait out the timeout.
        """
        await asyncio.sleep(timeout)
        return True

    @abstractmethod
    async def request_pairing_code(self, phone_number: str) -> str:
        """Ask the service for a pairing code for ``phone_number``."""
        pass

    @abstractmethod
    async def send_message(
        self,
        jid: str,
        message: OutgoingMessage,
        quoted: SentMessage | None = None,
    ) -> SentMessage:
        """Send a message, optionally quoting an earlier one."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the underlying connection. Safe to call more than once."""
        pass

    async def close_quietly(self) -> bool:
        """Close, logging a failure instead of raising it. Returns True on a clean close."""
        try:
            await self.close()
            return True
        except Exception as e:
            logger.error(f"Error closing transport session {self.workspace.session_id}: {e}")
            return False

    def subscribe(self, listener: ConnectionListener) -> None:
        """Register a connection-event listener."""
        self._listeners.append(listener)
        pending, self._pending = self._pending, []
        for event in pending:
            listener(event)

    def on_credentials_update(self, listener: CredentialsListener) -> None:
        """Register a listener called after credentials were persisted."""
        self._credential_listeners.append(listener)

    def emit(self, event: ConnectionEvent) -> None:
        """Deliver a connection event to subscribers."""
        if not self._listeners:
            self._pending.append(event)
            return
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Connection listener failed: {e}")

    def emit_credentials(self, creds: dict[str, Any]) -> None:
        """Notify credential listeners."""
        for listener in self._credential_listeners:
            try:
                listener(creds)
            except Exception as e:
                logger.error(f"Credentials listener failed: {e}")


class Transport(ABC):
    """Factory for protocol sessions."""

    @abstractmethod
    async def open_session(self, workspace: Workspace) -> TransportSession:
        """Open a new protocol session rooted at ``workspace``."""
        pass

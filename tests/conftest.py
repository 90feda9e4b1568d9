"""Shared fakes and fixtures."""

import asyncio
from pathlib import Path
from typing import Any, BinaryIO, Callable

import pytest

from pairgate.config.schema import Config, ExportConfig, PairingConfig, StorageConfig
from pairgate.storage.base import ArchiveStorage
from pairgate.transport.base import OutgoingMessage, SentMessage, Transport, TransportSession
from pairgate.transport.events import ConnectionClose, ConnectionOpen, ErrorInfo
from pairgate.workspace import Workspace

USER_JID = "15551234567:3@s.whatsapp.net"
LOCATOR = "https://storage.example/file/ABC123"


class FakeSession(TransportSession):
    """In-memory transport session driven by the test."""

    def __init__(self, workspace: Workspace, registered: bool = False, code: str = "ABCD-1234"):
        super().__init__(workspace)
        self._registered = registered
        self._user_id: str | None = None
        self.code = code
        self.requested: list[str] = []
        self.sent: list[tuple[str, OutgoingMessage, SentMessage | None]] = []
        self.close_calls = 0
        self.fail_request: Exception | None = None
        self.fail_send: Exception | None = None
        self.fail_close: Exception | None = None

    @property
    def registered(self) -> bool:
        return self._registered

    @property
    def user_id(self) -> str | None:
        return self._user_id

    async def request_pairing_code(self, phone_number: str) -> str:
        self.requested.append(phone_number)
        if self.fail_request:
            raise self.fail_request
        return self.code

    async def send_message(self, jid, message, quoted=None) -> SentMessage:
        if self.fail_send:
            raise self.fail_send
        self.sent.append((jid, message, quoted))
        return SentMessage(id=f"msg-{len(self.sent)}", remote_jid=jid)

    async def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise self.fail_close

    # Test drivers

    def write_creds(self, content: str = '{"registered": true}') -> Path:
        path = self.workspace.file("creds.json")
        path.write_text(content)
        return path

    def open(self, user_id: str = USER_JID, creds: bool = True) -> None:
        """Simulate the device linking: credentials land, then the connection opens."""
        self._user_id = user_id
        if creds:
            self.write_creds()
        self.emit(ConnectionOpen())

    def drop(self, status_code: int | None, message: str = "closed") -> None:
        reason = ErrorInfo(status_code, message) if status_code is not None else None
        self.emit(ConnectionClose(reason))


class FakeTransport(Transport):
    """Hands out FakeSessions and records what the workspace looked like at open time."""

    def __init__(self, registered: bool = False):
        self.registered = registered
        self.sessions: list[FakeSession] = []
        self.fail_open: Exception | None = None
        # Workspaces of earlier sessions that still existed when a new one opened
        self.leftover_workspaces: list[Path] = []

    async def open_session(self, workspace: Workspace) -> FakeSession:
        if self.fail_open:
            raise self.fail_open
        self.leftover_workspaces.extend(
            s.workspace.path for s in self.sessions if s.workspace.path.exists()
        )
        session = FakeSession(workspace, registered=self.registered)
        self.sessions.append(session)
        return session


class FakeStorage(ArchiveStorage):
    """Records uploads and returns a fixed locator."""

    def __init__(self, locator: str = LOCATOR):
        self.locator = locator
        self.uploads: list[tuple[bytes, str]] = []
        self.fail: Exception | None = None

    async def upload(self, stream: BinaryIO, filename: str) -> str:
        if self.fail:
            raise self.fail
        self.uploads.append((stream.read(), filename))
        return self.locator


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        pairing=PairingConfig(
            temp_dir=str(tmp_path / "temp"),
            settle_seconds=0,
            retry_backoff_seconds=0.01,
            retry_backoff_factor=2.0,
            retry_backoff_max_seconds=0.02,
            max_retries=2,
        ),
        export=ExportConfig(settle_seconds=0.05, poll_interval_seconds=0.01, flush_seconds=0),
        storage=StorageConfig(locator_prefix="https://storage.example/file/"),
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def registered_transport() -> FakeTransport:
    return FakeTransport(registered=True)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def eventually() -> Callable[..., Any]:
    """Poll a predicate until it holds, failing after a timeout."""

    async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)

    return _eventually

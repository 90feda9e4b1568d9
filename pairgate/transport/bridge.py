"""WebSocket bridge transport.

The messaging protocol itself runs in a separate bridge process. This module
talks to it over a WebSocket using small JSON frames:

Client to bridge:
- ``{"type": "open", "browser": [...], "creds": {...}, ...}``
- ``{"type": "request", "id": 1, "method": "...", "params": {...}}``
- ``{"type": "close"}``

Bridge to client:
- ``{"type": "ready"}``
- ``{"type": "creds", "creds": {...}}``
- ``{"type": "keys", "keys": {"<category>": {"<id>": {...} | null}}}``
- ``{"type": "connection", "connection": "open" | "close",
  "user": {"id": "..."}, "lastDisconnect": {"statusCode": 401, "message": "..."}}``
- ``{"type": "response", "id": 1, "ok": true, "data": ...}``
"""

import asyncio
import itertools
import json
from typing import Any, Callable

import aiohttp
from loguru import logger

from pairgate.transport.auth_state import CREDS_FILENAME, MultiFileAuthState
from pairgate.transport.base import OutgoingMessage, SentMessage, Transport, TransportSession
from pairgate.transport.events import ConnectionClose, ConnectionOpen, ErrorInfo
from pairgate.workspace import Workspace

# Reported when the bridge socket drops without a close frame from the service
BRIDGE_LOST_STATUS = 1006


class BridgeError(Exception):
    """The bridge rejected a request or went away."""


class BridgeSession(TransportSession):
    """A protocol session driven through the bridge WebSocket."""

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        auth_state: MultiFileAuthState,
        request_timeout: float = 30.0,
    ):
        super().__init__(auth_state.workspace)
        self._ws = ws
        self.auth_state = auth_state
        self.request_timeout = request_timeout
        self._ids = itertools.count(1)
        self._requests: dict[int, asyncio.Future] = {}
        self._ready = asyncio.Event()
        self._user_id: str | None = None
        self._closing = False
        self._reader_task: asyncio.Task | None = None
        self._write: asyncio.Future | None = None

    @property
    def registered(self) -> bool:
        return self.auth_state.registered

    @property
    def user_id(self) -> str | None:
        return self._user_id

    async def start(self, browser: list[str]) -> None:
        """Send the open frame and start reading bridge frames."""
        await self._ws.send_json({
            "type": "open",
            "browser": browser,
            "creds": self.auth_state.creds,
            "printQRInTerminal": False,
            "syncFullHistory": False,
            "generateHighQualityLinkPreview": True,
        })
        self._reader_task = asyncio.create_task(self._read_loop())

    async def wait_ready(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.debug(f"Bridge not ready after {timeout}s, continuing")
            return False

    async def request_pairing_code(self, phone_number: str) -> str:
        data = await self._call("requestPairingCode", number=phone_number)
        return str(data)

    async def send_message(
        self,
        jid: str,
        message: OutgoingMessage,
        quoted: SentMessage | None = None,
    ) -> SentMessage:
        params: dict[str, Any] = {"jid": jid, "content": message.to_dict()}
        if quoted:
            params["quoted"] = quoted.raw or {"key": {"id": quoted.id, "remoteJid": quoted.remote_jid}}
        data = await self._call("sendMessage", **params) or {}
        key = data.get("key", {})
        return SentMessage(id=key.get("id", ""), remote_jid=key.get("remoteJid", jid), raw=data)

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        if not self._ws.closed:
            try:
                await self._ws.send_json({"type": "close"})
            except (ConnectionError, RuntimeError) as e:
                logger.debug(f"Bridge close frame not sent: {e}")
            await self._ws.close()
        if self._reader_task and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        if self._write is not None and not self._write.done():
            try:
                await self._write
            except OSError as e:
                logger.debug(f"Pending credential write failed: {e}")
        self._fail_requests(BridgeError("session closed"))

    async def _call(self, method: str, **params: Any) -> Any:
        """Send a request frame and wait for its response."""
        if self._closing or self._ws.closed:
            raise BridgeError(f"{method}: session closed")

        request_id = next(self._ids)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._requests[request_id] = future
        try:
            await self._ws.send_json({
                "type": "request",
                "id": request_id,
                "method": method,
                "params": params,
            })
            return await asyncio.wait_for(future, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            raise BridgeError(f"{method}: no response after {self.request_timeout}s")
        finally:
            self._requests.pop(request_id, None)

    async def _read_loop(self) -> None:
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        frame = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.warning(f"Invalid JSON from bridge: {msg.data[:100]}")
                        continue
                    await self._handle_frame(frame)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning(f"Bridge socket error: {self._ws.exception()}")
                    break
        finally:
            self._fail_requests(BridgeError("bridge connection lost"))
            if not self._closing:
                self.emit(ConnectionClose(ErrorInfo(
                    status_code=BRIDGE_LOST_STATUS,
                    message="bridge connection lost",
                )))

    async def _handle_frame(self, frame: dict[str, Any]) -> None:
        """Apply one bridge frame. Writes run in a worker thread and finish before the next frame."""
        frame_type = frame.get("type")

        if frame_type == "ready":
            self._ready.set()

        elif frame_type == "creds":
            try:
                await self._persist(self.auth_state.save_creds, frame.get("creds") or {})
            except OSError as e:
                logger.error(f"Failed to persist credentials for {self.workspace.session_id}: {e}")
                return
            self.emit_credentials(self.auth_state.creds)

        elif frame_type == "keys":
            try:
                await self._persist(self.auth_state.save_keys, frame.get("keys") or {})
            except OSError as e:
                logger.error(f"Failed to persist keys for {self.workspace.session_id}: {e}")

        elif frame_type == "connection":
            connection = frame.get("connection")
            if connection == "open":
                self._user_id = (frame.get("user") or {}).get("id") or self._user_id
                self.emit(ConnectionOpen())
            elif connection == "close":
                self.emit(ConnectionClose(ErrorInfo.from_dict(frame.get("lastDisconnect"))))

        elif frame_type == "response":
            future = self._requests.get(frame.get("id"))
            if future is None or future.done():
                return
            if frame.get("ok"):
                future.set_result(frame.get("data"))
            else:
                future.set_exception(BridgeError(str(frame.get("error", "request failed"))))

        else:
            logger.debug(f"Ignoring bridge frame: {frame_type}")

    async def _persist(self, write: Callable[..., None], *args: Any) -> None:
        """Run a credential write in a worker thread. close() waits for it to land."""
        self._write = asyncio.ensure_future(asyncio.to_thread(write, *args))
        await asyncio.shield(self._write)

    def _fail_requests(self, error: Exception) -> None:
        for future in self._requests.values():
            if not future.done():
                future.set_exception(error)


class BridgeTransport(Transport):
    """Opens protocol sessions through a bridge WebSocket."""

    def __init__(
        self,
        bridge_url: str,
        browser: list[str] | None = None,
        request_timeout: float = 30.0,
        creds_filename: str = CREDS_FILENAME,
    ):
        self.bridge_url = bridge_url
        self.browser = browser or ["Mac OS", "Safari", "17.0"]
        self.request_timeout = request_timeout
        self.creds_filename = creds_filename
        self._http: aiohttp.ClientSession | None = None

    async def open_session(self, workspace: Workspace) -> BridgeSession:
        auth_state = MultiFileAuthState(workspace, self.creds_filename)
        auth_state.load()

        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()

        ws = await self._http.ws_connect(self.bridge_url, heartbeat=30)
        session = BridgeSession(ws, auth_state, request_timeout=self.request_timeout)
        await session.start(self.browser)
        logger.debug(f"Bridge session opened for {workspace.session_id}")
        return session

    async def aclose(self) -> None:
        """Close the shared HTTP client."""
        if self._http and not self._http.closed:
            await self._http.close()

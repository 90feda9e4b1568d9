"""HTTP API server for pairing requests."""

from aiohttp import web
from loguru import logger

from pairgate.pairing.errors import UnexpectedError
from pairgate.pairing.service import PairingService


class GatewayServer:
    """
    HTTP API server in front of the pairing service.

    Provides endpoints for:
    - Pairing code requests (GET /pair?number=...)
    - In-flight sessions (GET /sessions)
    - Health check (GET /health)
    """

    def __init__(
        self,
        service: PairingService,
        host: str = "0.0.0.0",
        port: int = 8000,
    ):
        """
        Initialize the gateway server.

        Args:
            service: Pairing service that runs the flows.
            host: Host to bind to.
            port: Port to listen on.
        """
        self.service = service
        self.host = host
        self.port = port
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/pair", self._handle_pair)
        app.router.add_get("/sessions", self._handle_sessions)
        return app

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "ok", "sessions": len(self.service.sessions)})

    async def _handle_pair(self, request: web.Request) -> web.Response:
        """
        Start a pairing flow and answer with its single reply.

        Query: ``number`` - phone number in any formatting.

        Returns ``{"code": "<pairing code or error message>"}``.
        """
        try:
            reply = await self.service.pair(request.query.get("number"))
            return web.json_response(reply.to_dict(), status=reply.status)
        except Exception as e:
            logger.error(f"Error handling pairing request: {e}")
            return web.json_response(
                {"code": UnexpectedError.reply_message},
                status=UnexpectedError.status,
            )

    async def _handle_sessions(self, request: web.Request) -> web.Response:
        """List in-flight sessions."""
        return web.json_response({"sessions": self.service.list_sessions()})

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info(f"Gateway API listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        logger.info("Gateway API stopped")

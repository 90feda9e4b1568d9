"""HTTP gateway for pairing requests."""

from pairgate.gateway.server import GatewayServer

__all__ = ["GatewayServer"]

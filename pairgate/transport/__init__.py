"""Messaging transports."""

from pairgate.transport.base import (
    LinkPreview,
    OutgoingMessage,
    SentMessage,
    Transport,
    TransportSession,
)

__all__ = ["LinkPreview", "OutgoingMessage", "SentMessage", "Transport", "TransportSession"]

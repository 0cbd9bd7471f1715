"""STOMP session handling for the realtime websocket endpoint."""

from .channel import StompChannelInterceptor
from .connection import ConnectionClosed, StompConnection
from .controller import MessageRouter, router
from .handshake import HandshakeInterceptor

__all__ = [
    "ConnectionClosed",
    "HandshakeInterceptor",
    "MessageRouter",
    "StompChannelInterceptor",
    "StompConnection",
    "router",
]

"""Websocket endpoint bridging clients to the STOMP broker."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, status

from app.domain.entities import SessionContext
from app.infrastructure.notifications import message_broker, session_registry
from app.infrastructure.notifications.stomp import negotiate_subprotocol
from app.interfaces.api.schemas import RealtimeStatusRead
from app.interfaces.realtime import (
    HandshakeInterceptor,
    StompChannelInterceptor,
    StompConnection,
    router as message_router,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

handshake_interceptor = HandshakeInterceptor()
channel_interceptor = StompChannelInterceptor()


@router.websocket("/ws")
async def stomp_websocket(websocket: WebSocket) -> None:
    """Authenticate the upgrade request, then speak STOMP until either side leaves."""

    context = SessionContext()
    if not handshake_interceptor.before_handshake(websocket.query_params, context):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    offered = list(websocket.scope.get("subprotocols") or [])
    try:
        await websocket.accept(subprotocol=negotiate_subprotocol(offered))
    except Exception as exc:
        handshake_interceptor.after_handshake(context, exc)
        context.close()
        raise
    handshake_interceptor.after_handshake(context)

    connection = StompConnection(
        websocket,
        context,
        interceptor=channel_interceptor,
        broker=message_broker,
        registry=session_registry,
        router=message_router,
    )
    await connection.run()


@router.get("/realtime/status", response_model=RealtimeStatusRead)
def realtime_status() -> RealtimeStatusRead:
    """Report how many STOMP sessions are currently connected."""

    return RealtimeStatusRead(connected_sessions=session_registry.count())

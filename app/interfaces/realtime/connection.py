"""One STOMP session running over an accepted FastAPI websocket."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import anyio
from fastapi import WebSocket, WebSocketDisconnect, status

from app.domain.entities import SessionContext, SessionState
from app.infrastructure.notifications.manager import (
    ConnectedSessionRegistry,
    SimpleBroker,
    is_broker_destination,
)
from app.infrastructure.notifications.stomp import (
    CONNECT,
    DISCONNECT,
    SEND,
    STOMP,
    SUBSCRIBE,
    UNSUBSCRIBE,
    StompFrame,
    StompProtocolError,
    connected_frame,
    error_frame,
    negotiate_version,
    parse_frames,
    receipt_frame,
)

from .channel import StompChannelInterceptor
from .controller import MessageRouter

logger = logging.getLogger(__name__)


class ConnectionClosed(RuntimeError):
    """Raised when a frame is delivered to a session that already ended."""


@dataclass(frozen=True)
class _CloseRequest:
    code: int


class StompConnection:
    """Drive a single websocket through the STOMP session lifecycle.

    Frames may be delivered from any thread; they are handed to the event
    loop that owns the websocket and written in order by a single writer.
    """

    def __init__(
        self,
        websocket: WebSocket,
        context: SessionContext,
        *,
        interceptor: StompChannelInterceptor,
        broker: SimpleBroker,
        registry: ConnectedSessionRegistry,
        router: MessageRouter,
    ) -> None:
        self._websocket = websocket
        self._context = context
        self._interceptor = interceptor
        self._broker = broker
        self._registry = registry
        self._router = router
        self._loop = asyncio.get_running_loop()
        self._outbox: asyncio.Queue[StompFrame | _CloseRequest] = asyncio.Queue()
        self._registered = False
        self._closed = False

    @property
    def session_id(self) -> str:
        return self._context.session_id

    def deliver(self, frame: StompFrame) -> None:
        if self._closed:
            raise ConnectionClosed(f"Session {self.session_id} is closed")
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, frame)

    def _request_close(self, code: int) -> None:
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, _CloseRequest(code))

    async def run(self) -> None:
        try:
            async with anyio.create_task_group() as task_group:
                task_group.start_soon(self._write_loop, task_group.cancel_scope)
                peer_left = await self._read_loop()
                if peer_left:
                    task_group.cancel_scope.cancel()
        finally:
            self._shutdown()

    async def _write_loop(self, cancel_scope: anyio.CancelScope) -> None:
        """Write queued frames; stop the whole session if the socket fails."""

        while True:
            item = await self._outbox.get()
            try:
                if isinstance(item, _CloseRequest):
                    await self._websocket.close(code=item.code)
                    return
                await self._websocket.send_text(item.serialize())
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.info("Session %s went away while writing: %s", self.session_id, exc)
                self._closed = True
                cancel_scope.cancel()
                return

    async def _read_loop(self) -> bool:
        """Process inbound frames; return ``True`` when the peer disconnected."""

        while True:
            message = await self._websocket.receive()
            if message["type"] == "websocket.disconnect":
                return True
            data = message.get("text")
            if data is None:
                data = (message.get("bytes") or b"").decode("utf-8", errors="replace")

            try:
                frames = parse_frames(data)
            except StompProtocolError as exc:
                logger.warning("Malformed frame on session %s: %s", self.session_id, exc)
                self.deliver(error_frame("Malformed frame", detail=str(exc)))
                self._request_close(status.WS_1002_PROTOCOL_ERROR)
                return False

            for frame in frames:
                if not self._handle(frame):
                    return False

    def _handle(self, frame: StompFrame) -> bool:
        """Apply one frame; return ``False`` once the session must end."""

        processed = self._interceptor.pre_send(frame, self._context)
        if processed is None:
            self.deliver(
                error_frame(
                    "Authentication required",
                    detail="The session is not authenticated",
                    receipt_id=frame.receipt,
                )
            )
            self._request_close(status.WS_1008_POLICY_VIOLATION)
            return False

        command = processed.command
        if command in (CONNECT, STOMP):
            return self._on_connect(processed)
        if command == SUBSCRIBE:
            if not self._on_subscribe(processed):
                return False
        elif command == UNSUBSCRIBE:
            self._on_unsubscribe(processed)
        elif command == SEND:
            self._on_send(processed)
        elif command == DISCONNECT:
            if processed.receipt:
                self.deliver(receipt_frame(processed.receipt))
            self._request_close(status.WS_1000_NORMAL_CLOSURE)
            return False
        else:
            logger.debug("Ignoring %s on session %s", command, self.session_id)

        if processed.receipt:
            self.deliver(receipt_frame(processed.receipt))
        return True

    def _on_connect(self, frame: StompFrame) -> bool:
        version = negotiate_version(frame.header("accept-version"))
        if version is None:
            self.deliver(
                error_frame(
                    "Unsupported protocol version",
                    detail="Supported protocol versions are 1.0,1.1,1.2",
                )
            )
            self._request_close(status.WS_1002_PROTOCOL_ERROR)
            return False

        self._context.advance(SessionState.ACTIVE)
        connected = self._registry.add(self.session_id)
        self._registered = True
        principal = self._context.principal
        self.deliver(
            connected_frame(version, user_name=principal.name if principal else None)
        )
        logger.info(
            "STOMP session %s connected (%s active sessions)", self.session_id, connected
        )
        if frame.receipt:
            self.deliver(receipt_frame(frame.receipt))
        return True

    def _on_subscribe(self, frame: StompFrame) -> bool:
        destination = frame.destination
        subscription_id = frame.header("id")
        if not destination or subscription_id is None:
            self.deliver(
                error_frame(
                    "Invalid SUBSCRIBE",
                    detail="SUBSCRIBE requires destination and id headers",
                    receipt_id=frame.receipt,
                )
            )
            self._request_close(status.WS_1002_PROTOCOL_ERROR)
            return False

        resolved = self._broker.subscribe(
            self, subscription_id, destination, user_id=self._context.user_id
        )
        self._context.add_subscription(subscription_id, resolved)
        return True

    def _on_unsubscribe(self, frame: StompFrame) -> None:
        subscription_id = frame.header("id")
        if subscription_id is None:
            return
        self._broker.unsubscribe(self.session_id, subscription_id)
        self._context.remove_subscription(subscription_id)

    def _on_send(self, frame: StompFrame) -> None:
        destination = frame.destination or ""
        if self._router.handles(destination):
            routed = self._router.dispatch(destination, frame.body, self._context)
            if routed is not None:
                send_to, payload = routed
                self._broker.publish(send_to, payload)
            return
        if is_broker_destination(destination):
            self._broker.publish_raw(destination, frame.body)
            return
        logger.debug("Dropping SEND to unknown destination %s", destination)

    def _shutdown(self) -> None:
        self._closed = True
        removed = self._broker.remove_session(self.session_id)
        if self._registered:
            remaining = self._registry.remove(self.session_id)
            logger.info(
                "STOMP session %s disconnected (%s subscriptions dropped, %s active sessions)",
                self.session_id,
                removed,
                remaining,
            )
        self._context.close()


__all__ = ["ConnectionClosed", "StompConnection"]

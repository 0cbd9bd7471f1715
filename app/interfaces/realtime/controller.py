"""Application destinations (``/app/...``) answered by the server itself."""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from app.domain.entities import SessionContext
from app.infrastructure.notifications.manager import APPLICATION_PREFIX

logger = logging.getLogger(__name__)

MessageHandler = Callable[..., dict[str, Any]]


@dataclass(frozen=True)
class _Route:
    pattern: re.Pattern[str]
    send_to: str
    handler: MessageHandler


class MessageRouter:
    """Map ``/app`` destinations to handlers whose result is re-published.

    Patterns may contain ``{name}`` placeholders; matched segments are passed
    to the handler as keyword arguments and substituted into ``send_to``.
    """

    def __init__(self, prefix: str = APPLICATION_PREFIX) -> None:
        self._prefix = prefix
        self._routes: list[_Route] = []

    def message_mapping(
        self, path: str, *, send_to: str
    ) -> Callable[[MessageHandler], MessageHandler]:
        regex = re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", path)
        pattern = re.compile(f"^{re.escape(self._prefix)}{regex}$")

        def decorator(handler: MessageHandler) -> MessageHandler:
            self._routes.append(_Route(pattern, send_to, handler))
            return handler

        return decorator

    def handles(self, destination: str) -> bool:
        return destination.startswith(self._prefix + "/")

    def dispatch(
        self, destination: str, body: str, context: SessionContext
    ) -> tuple[str, dict[str, Any]] | None:
        """Run the handler for ``destination`` and return ``(send_to, payload)``."""

        for route in self._routes:
            match = route.pattern.match(destination)
            if match is None:
                continue
            variables = match.groupdict()
            payload = route.handler(_decode_body(body), context, **variables)
            return route.send_to.format(**variables), payload
        logger.debug("No handler for application destination %s", destination)
        return None


def _decode_body(body: str) -> Any:
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body


def _epoch_millis() -> int:
    return int(time.time() * 1000)


router = MessageRouter()


@router.message_mapping("/ping", send_to="/topic/pong")
def ping(message: Any, context: SessionContext) -> dict[str, Any]:
    logger.debug("Ping from session %s", context.session_id)
    return {
        "status": "pong",
        "timestamp": _epoch_millis(),
        "message": "WebSocket connection is alive",
    }


@router.message_mapping("/echo", send_to="/topic/echo")
def echo(message: Any, context: SessionContext) -> dict[str, Any]:
    payload = dict(message) if isinstance(message, dict) else {"payload": message}
    payload["echo"] = True
    payload["timestamp"] = _epoch_millis()
    return payload


@router.message_mapping("/subscribe/{userId}", send_to="/topic/user/{userId}")
def subscribe_user(message: Any, context: SessionContext, userId: str) -> dict[str, Any]:
    logger.info("Session %s registered interest for user %s", context.session_id, userId)
    return {
        "event": "subscribed",
        "userId": userId,
        "username": context.username or "Anonymous",
        "sessionId": context.session_id,
        "message": "Successfully subscribed to notifications",
        "timestamp": _epoch_millis(),
    }


__all__ = ["MessageRouter", "echo", "ping", "router", "subscribe_user"]

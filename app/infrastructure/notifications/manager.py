"""Connection and subscription management for STOMP websocket sessions."""

from __future__ import annotations

import itertools
import json
import logging
import threading
from typing import Any, Protocol

from .stomp import StompFrame, message_frame

logger = logging.getLogger(__name__)

BROKER_PREFIXES: tuple[str, ...] = ("/topic", "/queue")
USER_DESTINATION_PREFIX = "/user"
APPLICATION_PREFIX = "/app"


class Subscriber(Protocol):
    """Anything that can receive frames pushed by the broker."""

    @property
    def session_id(self) -> str: ...

    def deliver(self, frame: StompFrame) -> None: ...


class ConnectedSessionRegistry:
    """Track live session identifiers; safe to call from any thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: set[str] = set()

    def add(self, session_id: str) -> int:
        with self._lock:
            self._sessions.add(session_id)
            return len(self._sessions)

    def remove(self, session_id: str) -> int:
        with self._lock:
            self._sessions.discard(session_id)
            return len(self._sessions)

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


def is_broker_destination(destination: str) -> bool:
    return any(
        destination == prefix or destination.startswith(prefix + "/")
        for prefix in (*BROKER_PREFIXES, USER_DESTINATION_PREFIX)
    )


def resolve_user_destination(destination: str, user_id: str | None) -> str:
    """Rewrite ``/user/queue/x`` style subscriptions to ``/user/{id}/queue/x``.

    Destinations that already name a user, or sessions without a user id,
    are returned unchanged.
    """

    if not user_id or not destination.startswith(USER_DESTINATION_PREFIX + "/"):
        return destination
    remainder = destination[len(USER_DESTINATION_PREFIX) :]
    if any(remainder == p or remainder.startswith(p + "/") for p in BROKER_PREFIXES):
        return f"{USER_DESTINATION_PREFIX}/{user_id}{remainder}"
    return destination


class SimpleBroker:
    """In-memory destination broker fanning MESSAGE frames out to subscribers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # destination -> {(session_id, subscription_id): subscriber}
        self._subscriptions: dict[str, dict[tuple[str, str], Subscriber]] = {}
        self._message_ids = itertools.count(1)

    def subscribe(
        self,
        subscriber: Subscriber,
        subscription_id: str,
        destination: str,
        *,
        user_id: str | None = None,
    ) -> str:
        """Register ``subscriber`` and return the resolved destination."""

        resolved = resolve_user_destination(destination, user_id)
        with self._lock:
            self._subscriptions.setdefault(resolved, {})[
                (subscriber.session_id, subscription_id)
            ] = subscriber
        logger.debug(
            "Session %s subscribed to %s as %s",
            subscriber.session_id,
            resolved,
            subscription_id,
        )
        return resolved

    def unsubscribe(self, session_id: str, subscription_id: str) -> bool:
        key = (session_id, subscription_id)
        with self._lock:
            for destination, subscribers in list(self._subscriptions.items()):
                if subscribers.pop(key, None) is not None:
                    if not subscribers:
                        del self._subscriptions[destination]
                    return True
        return False

    def remove_session(self, session_id: str) -> int:
        """Drop every subscription held by ``session_id``."""

        removed = 0
        with self._lock:
            for destination, subscribers in list(self._subscriptions.items()):
                for key in [key for key in subscribers if key[0] == session_id]:
                    del subscribers[key]
                    removed += 1
                if not subscribers:
                    del self._subscriptions[destination]
        return removed

    def subscriber_count(self, destination: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(destination, {}))

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()

    def publish(self, destination: str, payload: Any) -> int:
        """Serialize ``payload`` as JSON and deliver it to current subscribers.

        Returns the number of subscriptions the message reached. Subscribers
        whose delivery raises are dropped.
        """

        return self.publish_raw(destination, json.dumps(payload, default=str))

    def publish_raw(self, destination: str, body: str) -> int:
        with self._lock:
            targets = list(self._subscriptions.get(destination, {}).items())

        delivered = 0
        for (session_id, subscription_id), subscriber in targets:
            frame = message_frame(
                destination,
                subscription_id,
                f"{session_id}-{next(self._message_ids)}",
                body,
            )
            try:
                subscriber.deliver(frame)
            except Exception:
                logger.warning(
                    "Dropping subscription %s of session %s on %s",
                    subscription_id,
                    session_id,
                    destination,
                    exc_info=True,
                )
                self.unsubscribe(session_id, subscription_id)
                continue
            delivered += 1
        return delivered


session_registry = ConnectedSessionRegistry()
message_broker = SimpleBroker()


__all__ = [
    "APPLICATION_PREFIX",
    "BROKER_PREFIXES",
    "USER_DESTINATION_PREFIX",
    "ConnectedSessionRegistry",
    "SimpleBroker",
    "Subscriber",
    "is_broker_destination",
    "message_broker",
    "resolve_user_destination",
    "session_registry",
]

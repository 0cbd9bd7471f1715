"""State carried by a single realtime (WebSocket/STOMP) connection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4

ATTRIBUTE_TOKEN = "token"
ATTRIBUTE_USERNAME = "username"
ATTRIBUTE_USER_ID = "userId"

DEFAULT_AUTHORITY = "ROLE_USER"


class SessionState(str, Enum):
    CONNECTING = "connecting"
    HANDSHAKE_REJECTED = "handshake_rejected"
    HANDSHAKE_ACCEPTED = "handshake_accepted"
    FRAME_AUTHENTICATED = "frame_authenticated"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


_ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CONNECTING: frozenset(
        {SessionState.HANDSHAKE_REJECTED, SessionState.HANDSHAKE_ACCEPTED}
    ),
    SessionState.HANDSHAKE_ACCEPTED: frozenset(
        {SessionState.FRAME_AUTHENTICATED, SessionState.DISCONNECTED}
    ),
    SessionState.FRAME_AUTHENTICATED: frozenset(
        {SessionState.ACTIVE, SessionState.DISCONNECTED}
    ),
    SessionState.ACTIVE: frozenset({SessionState.DISCONNECTED}),
    SessionState.HANDSHAKE_REJECTED: frozenset(),
    SessionState.DISCONNECTED: frozenset(),
}


class InvalidSessionTransition(RuntimeError):
    """Raised when a session is moved to a state it cannot reach."""


@dataclass(frozen=True)
class Principal:
    """Verified identity attached to a session after CONNECT."""

    name: str
    user_id: str | None = None
    authorities: tuple[str, ...] = (DEFAULT_AUTHORITY,)


@dataclass
class SessionContext:
    """Short-lived context handed from the handshake to frame processing.

    The handshake stores its verified attributes here and the channel
    interceptor reads them back when the CONNECT frame arrives.
    """

    session_id: str = field(default_factory=lambda: uuid4().hex)
    state: SessionState = SessionState.CONNECTING
    attributes: dict[str, Any] = field(default_factory=dict)
    principal: Principal | None = None
    subscriptions: dict[str, str] = field(default_factory=dict)

    @property
    def username(self) -> str | None:
        value = self.attributes.get(ATTRIBUTE_USERNAME)
        return str(value) if value else None

    @property
    def user_id(self) -> str | None:
        if self.principal is not None and self.principal.user_id:
            return self.principal.user_id
        value = self.attributes.get(ATTRIBUTE_USER_ID)
        return str(value) if value else None

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None and self.state in (
            SessionState.FRAME_AUTHENTICATED,
            SessionState.ACTIVE,
        )

    @property
    def is_closed(self) -> bool:
        return self.state in (
            SessionState.HANDSHAKE_REJECTED,
            SessionState.DISCONNECTED,
        )

    def advance(self, target: SessionState) -> None:
        """Move to ``target`` or raise :class:`InvalidSessionTransition`."""

        if target is self.state:
            return
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidSessionTransition(
                f"Session {self.session_id} cannot move from {self.state.value} to {target.value}"
            )
        self.state = target

    def close(self) -> None:
        """Mark the session as finished from whatever live state it is in."""

        if self.is_closed:
            return
        if self.state is SessionState.CONNECTING:
            self.state = SessionState.HANDSHAKE_REJECTED
            return
        self.state = SessionState.DISCONNECTED

    def add_subscription(self, subscription_id: str, destination: str) -> None:
        self.subscriptions[subscription_id] = destination

    def remove_subscription(self, subscription_id: str) -> str | None:
        return self.subscriptions.pop(subscription_id, None)


__all__ = [
    "ATTRIBUTE_TOKEN",
    "ATTRIBUTE_USERNAME",
    "ATTRIBUTE_USER_ID",
    "DEFAULT_AUTHORITY",
    "InvalidSessionTransition",
    "Principal",
    "SessionContext",
    "SessionState",
]

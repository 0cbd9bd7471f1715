"""Inbound STOMP frame gate that attaches the verified principal."""

from __future__ import annotations

import logging

from app.domain.entities import Principal, SessionContext, SessionState
from app.infrastructure.notifications.stomp import (
    CONNECT,
    DISCONNECT,
    SEND,
    STOMP,
    SUBSCRIBE,
    UNSUBSCRIBE,
    StompFrame,
)

logger = logging.getLogger(__name__)

_OBSERVED_COMMANDS = frozenset({SUBSCRIBE, UNSUBSCRIBE, SEND, DISCONNECT})


class StompChannelInterceptor:
    """Gate every inbound frame on the identity established at handshake.

    ``pre_send`` returns ``None`` to suppress a frame; the connection treats
    that as a rejection and closes.
    """

    def pre_send(self, frame: StompFrame, context: SessionContext) -> StompFrame | None:
        logger.debug(
            "Inbound %s on session %s (destination=%s)",
            frame.command,
            context.session_id,
            frame.destination,
        )

        if frame.command in (CONNECT, STOMP):
            return self._authenticate(frame, context)

        if not context.is_authenticated:
            logger.warning(
                "Rejecting %s on session %s before an authenticated CONNECT",
                frame.command,
                context.session_id,
            )
            return None

        if frame.command in _OBSERVED_COMMANDS:
            logger.debug(
                "%s by %s to %s",
                frame.command,
                context.principal.name if context.principal else None,
                frame.destination,
            )
        return frame

    @staticmethod
    def _authenticate(frame: StompFrame, context: SessionContext) -> StompFrame | None:
        if context.is_authenticated:
            logger.warning("Duplicate CONNECT on session %s", context.session_id)
            return None

        username = context.username
        if not username or context.state is not SessionState.HANDSHAKE_ACCEPTED:
            logger.warning(
                "Rejecting CONNECT on session %s: no authenticated handshake",
                context.session_id,
            )
            context.close()
            return None

        context.principal = Principal(name=username, user_id=context.user_id)
        context.advance(SessionState.FRAME_AUTHENTICATED)
        logger.info("STOMP session %s authenticated as %s", context.session_id, username)
        return frame


__all__ = ["StompChannelInterceptor"]

"""Authenticate websocket connections before they are upgraded."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from app.domain.entities import SessionContext, SessionState
from app.domain.entities.realtime_session import (
    ATTRIBUTE_TOKEN,
    ATTRIBUTE_USER_ID,
    ATTRIBUTE_USERNAME,
)
from app.infrastructure.security import get_username_from_token

logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], str]


class HandshakeInterceptor:
    """Verify the ``token`` query parameter and seed the session attributes.

    Browsers cannot attach headers to a websocket upgrade, so the bearer token
    and the claimed user id travel in the query string.
    """

    def __init__(self, token_verifier: TokenVerifier = get_username_from_token) -> None:
        self._verify = token_verifier

    def before_handshake(
        self, query_params: Mapping[str, str], context: SessionContext
    ) -> bool:
        token = (query_params.get("token") or "").strip()
        if not token:
            logger.warning("Rejecting websocket handshake without a token")
            context.advance(SessionState.HANDSHAKE_REJECTED)
            return False

        try:
            username = self._verify(token)
        except ValueError as exc:
            logger.warning("Rejecting websocket handshake: %s", exc)
            context.advance(SessionState.HANDSHAKE_REJECTED)
            return False
        except Exception:
            logger.exception("Token verification failed during websocket handshake")
            context.advance(SessionState.HANDSHAKE_REJECTED)
            return False

        user_id = query_params.get("userId")
        context.attributes[ATTRIBUTE_TOKEN] = token
        context.attributes[ATTRIBUTE_USERNAME] = username
        if user_id:
            context.attributes[ATTRIBUTE_USER_ID] = user_id
        context.advance(SessionState.HANDSHAKE_ACCEPTED)
        logger.info("Websocket handshake accepted for %s (user id %s)", username, user_id)
        return True

    def after_handshake(
        self, context: SessionContext, exception: BaseException | None = None
    ) -> None:
        if exception is not None:
            logger.error(
                "Websocket handshake for session %s failed after acceptance: %s",
                context.session_id,
                exception,
            )
            return
        logger.debug("Websocket handshake completed for session %s", context.session_id)


__all__ = ["HandshakeInterceptor", "TokenVerifier"]

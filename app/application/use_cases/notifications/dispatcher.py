"""Gate notifications on user preferences and fan them out to channel adapters."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.orm import Session

from app.domain.entities import (
    DeliveryChannel,
    DeliveryOutcome,
    DeliveryRecord,
    DeliveryRecordStatus,
    DeliveryStatus,
    User,
)
from app.infrastructure.email import send_email
from app.infrastructure.notifications import realtime_notifications
from app.infrastructure.push import ExpoPushClient
from app.infrastructure.repositories import DeliveryRecordRepository
from app.utils import now_in_app_timezone

from .preferences import is_channel_enabled, should_deliver

logger = logging.getLogger(__name__)

MailSender = Callable[[str, str, str], bool]


class PushClient(Protocol):
    def send(
        self,
        device_token: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool: ...


class RealtimePublisher(Protocol):
    def notify_user(
        self, user_id: Any, title: str, message: str, notification_type: str
    ) -> bool: ...


class DeliveryRecorder(Protocol):
    def record(self, record: DeliveryRecord) -> DeliveryRecord: ...


class NotificationDispatcher:
    """Decide whether to deliver a notification and invoke the adapters.

    ``notify`` never raises: adapter exceptions are logged and turned into
    ``error`` delivery records, and the caller receives a
    :class:`DeliveryOutcome` describing what happened.
    """

    def __init__(
        self,
        *,
        push_client: PushClient | None = None,
        mail_sender: MailSender | None = send_email,
        realtime: RealtimePublisher | None = None,
        recorder: DeliveryRecorder | None = None,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._push_client = push_client
        self._mail_sender = mail_sender
        self._realtime = realtime
        self._recorder = recorder
        self._clock = clock

    def notify(
        self,
        user: User,
        title: str,
        message: str,
        category: str,
        *,
        push_type: str | None = None,
        email_subject: str | None = None,
        email_body: str | None = None,
        check_enabled: bool = True,
        bypass_preferences: bool = False,
    ) -> DeliveryOutcome:
        """Deliver ``title``/``message`` to ``user`` for ``category``.

        ``check_enabled=False`` skips only the per-category switch;
        ``bypass_preferences=True`` skips both gates for transactional and
        critical security notices. Passing ``email_subject`` also emails the
        user.
        """

        if not bypass_preferences:
            if check_enabled and not is_channel_enabled(category, user):
                logger.info(
                    "Notifications of type %s are disabled for user %s",
                    category,
                    user.username,
                )
                return DeliveryOutcome(
                    DeliveryStatus.SKIPPED_DISABLED,
                    f"Notifications of type {category} are disabled",
                )
            if not should_deliver(category, user, self._clock()):
                return DeliveryOutcome(
                    DeliveryStatus.SKIPPED_QUIET_HOURS,
                    "Notification held back by quiet hours",
                )

        notification_type = push_type or category
        records: list[DeliveryRecord] = []

        device = user.device
        if device is not None and self._push_client is not None:
            push_client = self._push_client
            records.append(
                self._attempt(
                    user,
                    DeliveryChannel.PUSH,
                    category,
                    title,
                    lambda: push_client.send(
                        device.token, title, message, {"type": notification_type}
                    ),
                )
            )
        elif device is None:
            logger.info("No device token registered for user %s", user.username)
        else:
            logger.info("No push client configured; skipping push for %s", user.username)

        if email_subject is not None and self._mail_sender is not None and user.email:
            mail_sender = self._mail_sender
            records.append(
                self._attempt(
                    user,
                    DeliveryChannel.EMAIL,
                    category,
                    title,
                    lambda: mail_sender(user.email, email_subject, email_body or message),
                )
            )

        if self._realtime is not None and user.id is not None:
            realtime = self._realtime
            records.append(
                self._attempt(
                    user,
                    DeliveryChannel.WEBSOCKET,
                    category,
                    title,
                    lambda: realtime.notify_user(user.id, title, message, notification_type),
                )
            )

        return self._summarize(records)

    def _attempt(
        self,
        user: User,
        channel: DeliveryChannel,
        category: str,
        title: str,
        send: Callable[[], bool],
    ) -> DeliveryRecord:
        detail: str | None = None
        try:
            status = (
                DeliveryRecordStatus.SENT if send() else DeliveryRecordStatus.FAILED
            )
        except Exception as exc:
            logger.exception(
                "%s delivery to user %s raised", channel.value, user.username
            )
            status = DeliveryRecordStatus.ERROR
            detail = f"{type(exc).__name__}: {exc}"

        record = DeliveryRecord(
            id=None,
            user_id=user.id,
            channel=channel,
            status=status,
            category=category,
            title=title,
            detail=detail,
            created_at=self._clock(),
        )
        return self._store(record)

    def _store(self, record: DeliveryRecord) -> DeliveryRecord:
        if self._recorder is None:
            return record
        try:
            return self._recorder.record(record)
        except Exception:
            logger.exception(
                "Could not store %s delivery record for user %s",
                record.channel.value,
                record.user_id,
            )
            return record

    @staticmethod
    def _summarize(records: list[DeliveryRecord]) -> DeliveryOutcome:
        if not records:
            return DeliveryOutcome(
                DeliveryStatus.FAILED, "No delivery channel available", records
            )
        if any(record.status is DeliveryRecordStatus.ERROR for record in records):
            return DeliveryOutcome(
                DeliveryStatus.FAILED, "A delivery channel raised an error", records
            )
        if any(record.status is DeliveryRecordStatus.SENT for record in records):
            return DeliveryOutcome(DeliveryStatus.SENT, "Notification sent", records)
        return DeliveryOutcome(
            DeliveryStatus.FAILED, "Notification could not be delivered", records
        )


def get_notification_dispatcher(session: Session) -> NotificationDispatcher:
    """Build a dispatcher wired to the configured adapters and ``session``."""

    return NotificationDispatcher(
        push_client=ExpoPushClient(),
        mail_sender=send_email,
        realtime=realtime_notifications,
        recorder=DeliveryRecordRepository(session),
    )


__all__ = [
    "DeliveryRecorder",
    "MailSender",
    "NotificationDispatcher",
    "PushClient",
    "RealtimePublisher",
    "get_notification_dispatcher",
]

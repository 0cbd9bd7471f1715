"""Use cases for a user's stored notification inbox."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.domain.entities import OperationResult
from app.infrastructure.notifications import serialize_notification
from app.infrastructure.repositories import NotificationRepository, UserRepository
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)


def list_user_notifications(
    session: Session,
    *,
    username: str,
    unread_only: bool = False,
    limit: int | None = 50,
) -> OperationResult:
    user = UserRepository(session).get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    repository = NotificationRepository(session)
    if unread_only:
        notifications = repository.list_unread_for_user(user.id, limit=limit)
    else:
        notifications = repository.list_for_user(user.id, limit=limit)
    return OperationResult.ok(
        "Notifications retrieved",
        notifications=[serialize_notification(item) for item in notifications],
    )


def mark_notification_as_read(
    session: Session, *, username: str, notification_id: int
) -> OperationResult:
    repository = NotificationRepository(session)
    notification = repository.get(notification_id)
    if notification is None:
        return OperationResult.fail("Notification not found")

    user = UserRepository(session).get_by_username(username)
    if user is None or notification.user_id != user.id:
        logger.warning(
            "User %s attempted to read notification %s they do not own",
            username,
            notification_id,
        )
        return OperationResult.fail("Unauthorized")

    notification.mark_as_read(now_in_app_timezone())
    repository.update(notification)
    logger.info("Notification %s marked as read by %s", notification_id, username)
    return OperationResult.ok("Notification marked as read")


def mark_all_notifications_as_read(session: Session, *, username: str) -> OperationResult:
    user = UserRepository(session).get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    count = NotificationRepository(session).mark_all_as_read(user_id=user.id)
    logger.info("Marked %s notifications as read for %s", count, username)
    return OperationResult.ok("All notifications marked as read", count=count)


def delete_notification(
    session: Session, *, username: str, notification_id: int
) -> OperationResult:
    repository = NotificationRepository(session)
    notification = repository.get(notification_id)
    if notification is None:
        return OperationResult.fail("Notification not found")

    user = UserRepository(session).get_by_username(username)
    if user is None or notification.user_id != user.id:
        logger.warning(
            "User %s attempted to delete notification %s they do not own",
            username,
            notification_id,
        )
        return OperationResult.fail("Unauthorized")

    repository.delete(notification_id)
    logger.info("Deleted notification %s for %s", notification_id, username)
    return OperationResult.ok("Notification deleted")


__all__ = [
    "delete_notification",
    "list_user_notifications",
    "mark_all_notifications_as_read",
    "mark_notification_as_read",
]

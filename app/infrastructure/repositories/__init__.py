"""Repository implementations for infrastructure layer."""

from .delivery_record_repository import DeliveryRecordRepository
from .notification_repository import NotificationRepository
from .user_repository import UserRepository

__all__ = [
    "DeliveryRecordRepository",
    "NotificationRepository",
    "UserRepository",
]

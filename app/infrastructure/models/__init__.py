"""ORM models used by the application infrastructure."""

from .user import UserModel
from .notification import NotificationModel
from .delivery_record import DeliveryRecordModel

__all__ = [
    "UserModel",
    "NotificationModel",
    "DeliveryRecordModel",
]

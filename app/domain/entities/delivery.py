"""Delivery bookkeeping for notification attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class DeliveryChannel(str, Enum):
    """Transport used for a single delivery attempt."""

    PUSH = "push"
    EMAIL = "email"
    WEBSOCKET = "websocket"


class DeliveryRecordStatus(str, Enum):
    """Outcome of a single adapter invocation."""

    SENT = "sent"
    FAILED = "failed"
    ERROR = "error"


class DeliveryStatus(str, Enum):
    """Aggregated outcome of a ``notify`` call."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED_DISABLED = "skipped_disabled"
    SKIPPED_QUIET_HOURS = "skipped_quiet_hours"


@dataclass
class DeliveryRecord:
    """Append-only trace of one attempted delivery."""

    id: int | None
    user_id: int | None
    channel: DeliveryChannel
    status: DeliveryRecordStatus
    category: str
    title: str
    detail: str | None = None
    created_at: datetime | None = None


@dataclass
class DeliveryOutcome:
    """Structured result returned to whoever triggered a notification."""

    status: DeliveryStatus
    message: str
    records: list[DeliveryRecord] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.SENT

    @property
    def skipped(self) -> bool:
        return self.status in (
            DeliveryStatus.SKIPPED_DISABLED,
            DeliveryStatus.SKIPPED_QUIET_HOURS,
        )

    def channel_status(self, channel: DeliveryChannel) -> DeliveryRecordStatus | None:
        """Return the status recorded for ``channel`` or ``None`` if untried."""

        for record in self.records:
            if record.channel is channel:
                return record.status
        return None


@dataclass
class OperationResult:
    """Success/failure envelope returned by notification use cases."""

    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data: Any) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, **data: Any) -> "OperationResult":
        return cls(success=False, message=message, data=data)


__all__ = [
    "DeliveryChannel",
    "DeliveryOutcome",
    "DeliveryRecord",
    "DeliveryRecordStatus",
    "DeliveryStatus",
    "OperationResult",
]

"""Append-only persistence for delivery records."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.entities import DeliveryChannel, DeliveryRecord, DeliveryRecordStatus
from app.infrastructure.models import DeliveryRecordModel
from app.utils import ensure_app_naive_datetime, ensure_app_timezone, now_in_app_timezone


class DeliveryRecordRepository:
    """Store delivery attempts; records are never updated or removed."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def record(self, record: DeliveryRecord) -> DeliveryRecord:
        model = DeliveryRecordModel(
            user_id=record.user_id,
            channel=record.channel.value,
            status=record.status.value,
            category=record.category,
            title=record.title[:120],
            detail=record.detail,
            created_at=ensure_app_naive_datetime(
                record.created_at or now_in_app_timezone()
            ),
        )
        self.session.add(model)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(model)
        return self._to_entity(model)

    def list_for_user(self, user_id: int, *, limit: int = 50) -> Sequence[DeliveryRecord]:
        query = (
            self.session.query(DeliveryRecordModel)
            .filter(DeliveryRecordModel.user_id == user_id)
            .order_by(DeliveryRecordModel.id.desc())
            .limit(limit)
        )
        return [self._to_entity(model) for model in query.all()]

    @staticmethod
    def _to_entity(model: DeliveryRecordModel) -> DeliveryRecord:
        return DeliveryRecord(
            id=model.id,
            user_id=model.user_id,
            channel=DeliveryChannel(model.channel),
            status=DeliveryRecordStatus(model.status),
            category=model.category,
            title=model.title,
            detail=model.detail,
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["DeliveryRecordRepository"]

"""SQLAlchemy model for the append-only delivery log."""

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class DeliveryRecordModel(Base):
    """One attempted delivery on one channel."""

    __tablename__ = "delivery_record"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    channel = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    category = Column(String(50), nullable=False)
    title = Column(String(120), nullable=False)
    detail = Column(Text, nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)


__all__ = ["DeliveryRecordModel"]

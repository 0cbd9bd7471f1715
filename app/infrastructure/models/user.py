"""SQLAlchemy model for the user table."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from app.infrastructure.database import Base


class UserModel(Base):
    """Database representation of a patient or staff user."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(80), nullable=False, unique=True, index=True)
    email = Column(String(120), nullable=False, index=True)
    first_name = Column(String(80), nullable=True)
    last_name = Column(String(80), nullable=True)
    notification_settings = Column(Text, nullable=True)
    schedule_settings = Column(Text, nullable=True)
    device_token = Column(String(255), nullable=True)
    device_platform = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

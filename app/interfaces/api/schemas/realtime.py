"""Pydantic models describing realtime diagnostics."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RealtimeStatusRead(BaseModel):
    """Aggregate state of the websocket bridge."""

    connected_sessions: int = Field(..., ge=0, description="Live STOMP sessions")
    status: str = Field(default="ok")


__all__ = ["RealtimeStatusRead"]

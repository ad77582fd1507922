"""Notification API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.domain import NotificationChannel, NotificationEntry


class NotificationModel(BaseModel):
    id: str
    channel: NotificationChannel
    order_id: str
    driver_id: Optional[str] = None
    message: str
    created_at: datetime
    read: bool

    @classmethod
    def from_domain(cls, entry: NotificationEntry) -> "NotificationModel":
        return cls(
            id=entry.id,
            channel=entry.channel,
            order_id=entry.order_id,
            driver_id=entry.driver_id,
            message=entry.message,
            created_at=entry.created_at,
            read=entry.read,
        )

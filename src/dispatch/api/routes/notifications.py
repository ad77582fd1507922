"""Notification feeds."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import NotificationChannel
from ...schemas.notifications import NotificationModel
from ...services.engine import DispatchEngine
from ..deps import get_engine, translate_errors

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationModel], status_code=status.HTTP_200_OK)
def list_notifications(
    channel: NotificationChannel | None = Query(default=None),
    order_id: str | None = Query(default=None),
    unread_only: bool = Query(default=False),
    engine: DispatchEngine = Depends(get_engine),
) -> List[NotificationModel]:
    entries = engine.queries.notifications(channel, order_id=order_id, unread_only=unread_only)
    return [NotificationModel.from_domain(entry) for entry in entries]


@router.post("/{notification_id}/read", response_model=NotificationModel, status_code=status.HTTP_200_OK)
def mark_read(notification_id: str, engine: DispatchEngine = Depends(get_engine)) -> NotificationModel:
    with translate_errors("mark notification read"):
        return NotificationModel.from_domain(engine.mark_notification_read(notification_id))

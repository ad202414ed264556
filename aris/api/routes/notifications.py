from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from aris.api.deps import get_db_session
from aris.api.models import NotificationResponse
from aris.core.security import get_current_active_user
from aris.schema.sql import User
from aris.services import notifications as notifications_service

router = APIRouter()


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  limit: int = Query(20, ge=1, le=100),  # noqa: B008
  offset: int = Query(0, ge=0),  # noqa: B008
  unread_only: bool = Query(False),  # noqa: B008
) -> list[NotificationResponse]:
  """
  Poll for recent notifications for the current user.

  - **limit**: Max number of notifications to return.
  - **offset**: Number of notifications to skip (for pagination).
  - **unread_only**: Only return notifications not yet marked read.
  """
  notifications = await notifications_service.list_notifications(session, current_user, limit=limit, offset=offset, unread_only=unread_only)
  return [NotificationResponse(**notifications_service.notification_payload(notification)) for notification in notifications]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
  notification_id: str,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> NotificationResponse:
  notification = await notifications_service.mark_notification_read(session, current_user, notification_id)
  return NotificationResponse(**notifications_service.notification_payload(notification))

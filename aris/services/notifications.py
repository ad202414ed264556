"""In-app notifications: background writes and user-facing reads."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aris.core.database import get_session_factory
from aris.schema.notifications import InAppNotification
from aris.schema.sql import User
from aris.utils.ids import parse_uuid

logger = logging.getLogger(__name__)

NOTIFICATION_KINDS = frozenset({"info", "success", "warning", "error"})


async def create_notification(*, user_id: str, organization_id: str | None, title: str, message: str, kind: str = "info", action_url: str | None = None, data: dict[str, Any] | None = None) -> None:
  """Insert a notification from background work; failures are logged, never raised."""
  session_factory = get_session_factory()
  if session_factory is None:
    logger.debug("In-app notification persistence disabled; dropping title=%s", title)
    return

  record = InAppNotification(
    user_id=uuid.UUID(user_id),
    organization_id=uuid.UUID(organization_id) if organization_id else None,
    kind=kind if kind in NOTIFICATION_KINDS else "info",
    title=title,
    message=message,
    action_url=action_url,
    data_json=data or {},
    read=False,
  )
  try:
    async with session_factory() as session:
      session.add(record)
      await session.commit()
  except SQLAlchemyError:
    logger.error("Failed to store notification for user %s", user_id, exc_info=True)


def notification_payload(notification: InAppNotification) -> dict[str, Any]:
  return {
    "id": str(notification.id),
    "kind": notification.kind,
    "title": notification.title,
    "message": notification.message,
    "action_url": notification.action_url,
    "data": notification.data_json or {},
    "read": bool(notification.read),
    "created_at": notification.created_at,
  }


async def list_notifications(session: AsyncSession, user: User, *, limit: int = 20, offset: int = 0, unread_only: bool = False) -> list[InAppNotification]:
  query = select(InAppNotification).where(InAppNotification.user_id == user.id)
  if unread_only:
    query = query.where(InAppNotification.read.is_(False))
  query = query.order_by(desc(InAppNotification.created_at)).limit(limit).offset(offset)
  result = await session.execute(query)
  return list(result.scalars().all())


async def mark_notification_read(session: AsyncSession, user: User, notification_id: str) -> InAppNotification:
  """Mark one of the user's notifications as read; other users' ids look missing."""
  parsed = parse_uuid(notification_id)
  if parsed is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found.")
  stmt = update(InAppNotification).where(InAppNotification.id == parsed, InAppNotification.user_id == user.id).values(read=True).returning(InAppNotification)
  result = await session.execute(stmt)
  notification = result.scalar_one_or_none()
  if notification is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found.")
  await session.commit()
  return notification

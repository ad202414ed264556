"""SQLAlchemy model for in-app notifications."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from aris.core.database import Base


class InAppNotification(Base):
  """Persist in-app notifications for user polling."""

  __tablename__ = "notifications"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  organization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=True)
  kind: Mapped[str] = mapped_column(String, nullable=False, default="info")
  title: Mapped[str] = mapped_column(String, nullable=False)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  action_url: Mapped[str | None] = mapped_column(String, nullable=True)
  data_json: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
  read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from aris.core.database import Base


class Contact(Base):
  """CRM contact owned by an organization."""

  __tablename__ = "contacts"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=False)
  created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
  first_name: Mapped[str] = mapped_column(String, nullable=False)
  last_name: Mapped[str | None] = mapped_column(String, nullable=True)
  email: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  company: Mapped[str | None] = mapped_column(String, nullable=True)
  phone: Mapped[str | None] = mapped_column(String, nullable=True)
  notes: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

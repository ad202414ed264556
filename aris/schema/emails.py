"""SQLAlchemy models for connected mailboxes, the email index and cached AI output."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from aris.core.database import Base


class EmailAccount(Base):
  __tablename__ = "email_accounts"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  organization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id"), index=True, nullable=True)
  email_address: Mapped[str] = mapped_column(String, nullable=False)
  provider: Mapped[str] = mapped_column(String, nullable=False, default="imap")
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Email(Base):
  """Indexed email metadata; bodies are kept short for scoring and prompts."""

  __tablename__ = "emails"
  __table_args__ = (Index("ix_emails_user_folder_received", "user_id", "folder_name", "received_at"),)

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  email_account_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("email_accounts.id", ondelete="CASCADE"), index=True, nullable=False)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  organization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id"), index=True, nullable=True)
  message_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  subject: Mapped[str | None] = mapped_column(Text, nullable=True)
  preview: Mapped[str | None] = mapped_column(Text, nullable=True)
  body: Mapped[str | None] = mapped_column(Text, nullable=True)
  sender_email: Mapped[str | None] = mapped_column(String, nullable=True)
  recipient_email: Mapped[str | None] = mapped_column(String, nullable=True)
  folder_name: Mapped[str] = mapped_column(String, nullable=False, default="INBOX")
  received_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  replied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class EmailAICache(Base):
  """One row of analysis/draft output per email; freshness is judged on read."""

  __tablename__ = "email_ai_cache"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  email_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("emails.id", ondelete="CASCADE"), unique=True, nullable=False)
  organization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
  analysis_result: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
  draft_result: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

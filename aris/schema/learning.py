"""SQLAlchemy models for email learning sessions and the patterns they produce."""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from aris.core.database import Base


class LearningSession(Base):
  __tablename__ = "email_learning_sessions"
  __table_args__ = (
    CheckConstraint("status IN ('starting', 'processing', 'completed', 'failed', 'cancelled')", name="ck_learning_sessions_status"),
    CheckConstraint("progress >= 0 AND progress <= 100", name="ck_learning_sessions_progress"),
    Index("ix_learning_sessions_user_status", "user_id", "status"),
    Index("ix_learning_sessions_user_started", "user_id", "started_at"),
    # At most one active session per user.
    Index("uq_learning_sessions_user_active", "user_id", unique=True, postgresql_where=text("status IN ('starting', 'processing')")),
  )

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  organization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=True, index=True)
  account_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("email_accounts.id", ondelete="SET NULL"), nullable=True)
  status: Mapped[str] = mapped_column(String, nullable=False, default="starting")
  progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  max_emails: Mapped[int] = mapped_column(Integer, nullable=False)
  emails_selected: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  emails_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  patterns_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  cost_usd: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False, default=Decimal("0"), server_default="0")
  tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  quality_score: Mapped[float | None] = mapped_column(Float, nullable=True)
  selection: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
  recommendations: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  started_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class EmailPattern(Base):
  __tablename__ = "email_patterns"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  organization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=True)
  session_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("email_learning_sessions.id", ondelete="SET NULL"), nullable=True, index=True)
  pattern_type: Mapped[str] = mapped_column(String, nullable=False)
  context_category: Mapped[str] = mapped_column(String, nullable=False)
  language: Mapped[str] = mapped_column(String, nullable=False, default="en")
  trigger_keywords: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
  response_template: Mapped[str] = mapped_column(Text, nullable=False, default="")
  confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
  example_pairs: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

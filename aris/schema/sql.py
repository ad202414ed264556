from __future__ import annotations

import datetime
import uuid
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from aris.core.database import Base
from aris.schema.contacts import Contact  # noqa: F401
from aris.schema.emails import Email, EmailAccount, EmailAICache  # noqa: F401
from aris.schema.learning import EmailPattern, LearningSession  # noqa: F401
from aris.schema.notifications import InAppNotification  # noqa: F401


class SubscriptionTier(str, Enum):
  STARTER = "starter"
  PRO = "pro"
  PREMIUM_BASIC = "premium_basic"
  PREMIUM_ADVANCED = "premium_advanced"
  PREMIUM_ENTERPRISE = "premium_enterprise"


class MemberRole(str, Enum):
  OWNER = "owner"
  ADMIN = "admin"
  MEMBER = "member"


class Organization(Base):
  __tablename__ = "organizations"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  name: Mapped[str] = mapped_column(String, nullable=False)
  subscription_tier: Mapped[SubscriptionTier] = mapped_column(SAEnum(SubscriptionTier, name="subscription_tier", values_callable=lambda enum: [member.value for member in enum]), default=SubscriptionTier.STARTER, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class User(Base):
  __tablename__ = "users"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  firebase_uid: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  full_name: Mapped[str | None] = mapped_column(String, nullable=True)
  current_organization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=True, index=True)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class OrganizationMember(Base):
  __tablename__ = "organization_members"

  organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
  role: Mapped[MemberRole] = mapped_column(SAEnum(MemberRole, name="member_role", values_callable=lambda enum: [member.value for member in enum]), default=MemberRole.MEMBER, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LLMAuditLog(Base):
  __tablename__ = "llm_audit_logs"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
  model_name: Mapped[str] = mapped_column(String, nullable=False)
  purpose: Mapped[str] = mapped_column(String, nullable=False)
  prompt_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
  tokens_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
  status: Mapped[str | None] = mapped_column(String, nullable=True)
  timestamp: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

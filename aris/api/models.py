from __future__ import annotations

import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

MAX_BATCH_EMAILS = 50


class LearningSessionCreateRequest(BaseModel):
  """Request payload for starting an email learning session."""

  organization_id: StrictStr | None = Field(default=None, description="Organization to learn for; defaults to the user's current organization.")
  account_id: StrictStr | None = Field(default=None, description="Restrict learning to one of the user's email accounts.")
  max_emails: int | None = Field(default=None, ge=1, le=5000, description="Upper bound on analyzed emails; clamped to the subscription tier limit.")
  model_config = ConfigDict(extra="forbid")


class LearningSessionCreateResponse(BaseModel):
  session_id: str
  status: str
  message: str
  reused: bool = Field(default=False, description="True when an already running session was returned instead of a new one.")


class LearningSessionStatusResponse(BaseModel):
  """Polling payload for a learning session."""

  session_id: str
  status: str
  progress: int
  message: str
  elapsed_seconds: float
  estimated_remaining_seconds: float | None
  emails_selected: int
  emails_processed: int
  patterns_found: int
  cost_usd: float
  tokens_used: int
  quality_score: float | None = None
  recommendations: list[str] = Field(default_factory=list)
  selection: dict[str, Any] | None = None
  error_message: str | None = None
  started_at: datetime.datetime
  completed_at: datetime.datetime | None = None


class LearningSessionListResponse(BaseModel):
  sessions: list[LearningSessionStatusResponse]


class SelectionPreviewResponse(BaseModel):
  """Selection preview: which emails a session would analyze, without LLM calls."""

  tier: str
  max_emails: int
  total_selected: int
  sent_emails: int
  received_emails: int
  selection_strategy: str
  estimated_cost_usd: float
  estimated_time_minutes: int
  quality_score: float
  recommendations: list[str]


class EmailAIProcessRequest(BaseModel):
  skip_draft: bool = False
  force_reprocess: bool = False
  priority: Literal["low", "normal", "high"] = "normal"
  model_config = ConfigDict(extra="forbid")


class EmailAIBatchRequest(BaseModel):
  email_ids: list[StrictStr] = Field(min_length=1, max_length=MAX_BATCH_EMAILS)
  skip_draft: bool = False
  force_reprocess: bool = False
  model_config = ConfigDict(extra="forbid")


class EmailAIResultResponse(BaseModel):
  success: bool
  email_id: str
  analysis: dict[str, Any] | None = None
  draft: dict[str, Any] | None = None
  cached: bool = False
  skipped: bool = False
  reason: str | None = None
  category: str | None = None
  error: str | None = None


class EmailAIBatchResponse(BaseModel):
  results: list[EmailAIResultResponse]
  processed: int
  failed: int


class ContactCreateRequest(BaseModel):
  organization_id: StrictStr = Field(description="Organization that owns the contact.")
  first_name: StrictStr = Field(min_length=1, max_length=200)
  last_name: StrictStr | None = Field(default=None, max_length=200)
  email: StrictStr | None = Field(default=None, max_length=320)
  company: StrictStr | None = Field(default=None, max_length=200)
  phone: StrictStr | None = Field(default=None, max_length=50)
  notes: StrictStr | None = Field(default=None, max_length=5000)
  model_config = ConfigDict(extra="forbid")


class ContactUpdateRequest(BaseModel):
  first_name: StrictStr | None = Field(default=None, min_length=1, max_length=200)
  last_name: StrictStr | None = Field(default=None, max_length=200)
  email: StrictStr | None = Field(default=None, max_length=320)
  company: StrictStr | None = Field(default=None, max_length=200)
  phone: StrictStr | None = Field(default=None, max_length=50)
  notes: StrictStr | None = Field(default=None, max_length=5000)
  model_config = ConfigDict(extra="forbid")


class ContactResponse(BaseModel):
  id: str
  organization_id: str
  created_by: str | None = None
  first_name: str
  last_name: str | None = None
  email: str | None = None
  company: str | None = None
  phone: str | None = None
  notes: str | None = None
  created_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None


class ContactListResponse(BaseModel):
  contacts: list[ContactResponse]


class NotificationResponse(BaseModel):
  id: str
  kind: str
  title: str
  message: str
  action_url: str | None = None
  data: dict[str, Any] = Field(default_factory=dict)
  read: bool
  created_at: datetime.datetime | None = None


class WeeklyLearningResponse(BaseModel):
  total_users: int
  started: int
  skipped: int
  failed: int = 0

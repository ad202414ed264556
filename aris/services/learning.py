"""Learning session lifecycle: start, poll, list, cancel and the background run.

The HTTP layer resolves dependencies and hands repositories in, so the same
functions serve request handlers, the weekly task and tests.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from aris.api.models import LearningSessionCreateRequest, LearningSessionCreateResponse, LearningSessionStatusResponse, SelectionPreviewResponse
from aris.config import Settings
from aris.learning.models import LearningSessionRecord
from aris.learning.worker import EmailLearningProcessor, LearningRequest
from aris.schema.sql import User
from aris.services.email_selection import EmailSelection, SmartEmailSelector, clamp_max_emails, resolve_tier, strategy_description, tier_limits, tier_recommendations
from aris.services.model_routing import learning_model
from aris.services.notifications import create_notification
from aris.services.organizations import organization_tier, resolve_optional_organization
from aris.storage.emails_repo import EmailsRepository
from aris.storage.learning_repo import LearningSessionsRepository
from aris.utils.ids import generate_session_id, parse_uuid

logger = logging.getLogger(__name__)

Scheduler = Callable[[LearningRequest], Any]


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


def status_message(record: LearningSessionRecord) -> str:
  if record.status == "starting":
    return "Preparing to analyze your emails..."
  if record.status == "processing":
    return f"Learning from your emails ({record.progress}% complete)..."
  if record.status == "completed":
    return f"Learning complete! Found {record.patterns_found} patterns."
  if record.status == "failed":
    return f"Learning failed: {record.error_message or 'Unknown error'}"
  return "Learning was cancelled."


def elapsed_seconds(record: LearningSessionRecord, now: datetime.datetime) -> float:
  end = record.completed_at or now
  return max((end - record.started_at).total_seconds(), 0.0)


def estimate_remaining_seconds(record: LearningSessionRecord, elapsed: float) -> float | None:
  """Linear extrapolation from progress so far; None until there is progress to extrapolate."""
  if record.is_terminal:
    return 0.0
  if record.progress <= 0:
    return None
  if record.progress >= 100:
    return 0.0
  return round(elapsed * (100 - record.progress) / record.progress, 1)


def build_status_response(record: LearningSessionRecord, *, now: datetime.datetime | None = None) -> LearningSessionStatusResponse:
  elapsed = elapsed_seconds(record, now or _utcnow())
  return LearningSessionStatusResponse(
    session_id=record.session_id,
    status=record.status,
    progress=record.progress,
    message=status_message(record),
    elapsed_seconds=round(elapsed, 1),
    estimated_remaining_seconds=estimate_remaining_seconds(record, elapsed),
    emails_selected=record.emails_selected,
    emails_processed=record.emails_processed,
    patterns_found=record.patterns_found,
    cost_usd=float(record.cost_usd or 0.0),
    tokens_used=record.tokens_used,
    quality_score=record.quality_score,
    recommendations=list(record.recommendations or []),
    selection=record.selection,
    error_message=record.error_message,
    started_at=record.started_at,
    completed_at=record.completed_at,
  )


async def open_session(sessions_repo: LearningSessionsRepository, *, user_id: str, tier: str, organization_id: str | None = None, account_id: str | None = None, max_emails: int | None = None) -> tuple[LearningSessionRecord, bool]:
  """Return (session, created). An active session for the user is reused rather than duplicated."""
  active = await sessions_repo.find_active_session(user_id)
  if active is not None:
    logger.info("Reusing active learning session %s for user %s", active.session_id, user_id)
    return active, False

  now = _utcnow()
  record = LearningSessionRecord(
    session_id=generate_session_id(),
    user_id=user_id,
    status="starting",
    max_emails=clamp_max_emails(max_emails, tier),
    started_at=now,
    organization_id=organization_id,
    account_id=account_id,
    updated_at=now,
  )
  stored = await sessions_repo.create_session(record)
  created = stored.session_id == record.session_id
  if created:
    logger.info("Learning session %s created user=%s tier=%s max_emails=%d", record.session_id, user_id, tier, record.max_emails)
  return stored, created


def learning_request_for(record: LearningSessionRecord, tier: str) -> LearningRequest:
  return LearningRequest(session_id=record.session_id, user_id=record.user_id, max_emails=record.max_emails, tier=resolve_tier(tier), organization_id=record.organization_id, account_id=record.account_id)


async def _require_account(emails_repo: EmailsRepository, user_id: str, account_id: str) -> None:
  if parse_uuid(account_id) is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A valid account_id is required.")
  accounts = await emails_repo.list_active_accounts(user_id, account_id=account_id)
  if not accounts:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email account not found.")


async def start_learning_session(db: AsyncSession, user: User, payload: LearningSessionCreateRequest, *, sessions_repo: LearningSessionsRepository, emails_repo: EmailsRepository, schedule: Scheduler) -> LearningSessionCreateResponse:
  """Validate the request, create (or reuse) a session and schedule the background run."""
  organization = await resolve_optional_organization(db, user, payload.organization_id)
  user_id = str(user.id)
  if payload.account_id is not None:
    await _require_account(emails_repo, user_id, payload.account_id)

  tier = organization_tier(organization)
  record, created = await open_session(sessions_repo, user_id=user_id, tier=tier, organization_id=str(organization.id) if organization else None, account_id=payload.account_id, max_emails=payload.max_emails)
  if not created:
    return LearningSessionCreateResponse(session_id=record.session_id, status=record.status, message="A learning session is already running.", reused=True)

  schedule(learning_request_for(record, tier))
  return LearningSessionCreateResponse(session_id=record.session_id, status=record.status, message="Learning session started. Poll the session for progress.")


async def _owned_session(sessions_repo: LearningSessionsRepository, user: User, session_id: str) -> LearningSessionRecord:
  record = await sessions_repo.get_session(session_id)
  # Other users' sessions are indistinguishable from missing ones.
  if record is None or record.user_id != str(user.id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Learning session not found.")
  return record


async def get_session_status(sessions_repo: LearningSessionsRepository, user: User, session_id: str, *, now: datetime.datetime | None = None) -> LearningSessionStatusResponse:
  record = await _owned_session(sessions_repo, user, session_id)
  return build_status_response(record, now=now)


async def list_sessions(sessions_repo: LearningSessionsRepository, user: User, *, limit: int = 20) -> list[LearningSessionStatusResponse]:
  records = await sessions_repo.list_sessions(str(user.id), limit=limit)
  now = _utcnow()
  return [build_status_response(record, now=now) for record in records]


async def cancel_session(sessions_repo: LearningSessionsRepository, user: User, session_id: str) -> LearningSessionStatusResponse:
  """Cancel an active session; the background run notices on its next progress write."""
  record = await _owned_session(sessions_repo, user, session_id)
  if record.is_terminal:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Learning session is already {record.status}.")

  updated = await sessions_repo.transition(record.session_id, "cancelled", completed_at=_utcnow())
  if updated is None:
    current = await sessions_repo.get_session(record.session_id)
    current_status = current.status if current else "gone"
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Learning session is already {current_status}.")
  logger.info("Learning session %s cancelled by user %s at %d%%", record.session_id, user.id, updated.progress)
  return build_status_response(updated)


async def preview_selection(db: AsyncSession, user: User, *, organization_id: str | None, max_emails: int | None, emails_repo: EmailsRepository) -> SelectionPreviewResponse:
  """Run the selector without any LLM calls so users can see what would be analyzed."""
  organization = await resolve_optional_organization(db, user, organization_id)
  tier = organization_tier(organization)
  user_id = str(user.id)
  accounts = await emails_repo.list_active_accounts(user_id)
  if accounts:
    selection = await SmartEmailSelector(emails_repo).select(user_id, tier=tier, organization_id=str(organization.id) if organization else None, max_emails=max_emails, account_ids=[account.account_id for account in accounts])
  else:
    resolved = resolve_tier(tier)
    selection = EmailSelection(tier=resolved, max_emails=clamp_max_emails(max_emails, resolved), strategy=strategy_description(resolved, tier_limits(resolved)))
  return SelectionPreviewResponse(**selection.summary(), recommendations=tier_recommendations(tier))


def build_learning_processor(settings: Settings, *, sessions_repo: LearningSessionsRepository, emails_repo: EmailsRepository) -> EmailLearningProcessor:
  return EmailLearningProcessor(
    sessions_repo=sessions_repo,
    emails_repo=emails_repo,
    model_factory=lambda: learning_model(settings),
    notifier=create_notification,
    batch_size=settings.learning_batch_size,
    batch_delay_seconds=settings.learning_batch_delay_seconds,
  )


async def run_learning_session(request: LearningRequest, *, settings: Settings) -> None:
  """Background entry point scheduled after a session row is created."""
  from aris.storage.factory import _get_emails_repo, _get_learning_repo

  processor = build_learning_processor(settings, sessions_repo=_get_learning_repo(settings), emails_repo=_get_emails_repo(settings))
  await processor.process_session(request)

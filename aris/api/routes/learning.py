from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from aris.api.deps import LearningRunner, get_db_session, get_emails_repo, get_learning_runner, get_learning_sessions_repo
from aris.api.models import LearningSessionCreateRequest, LearningSessionCreateResponse, LearningSessionListResponse, LearningSessionStatusResponse, SelectionPreviewResponse
from aris.core.security import get_current_active_user
from aris.schema.sql import User
from aris.services import learning as learning_service
from aris.storage.emails_repo import EmailsRepository
from aris.storage.learning_repo import LearningSessionsRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/sessions", response_model=LearningSessionCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_learning_session(
  payload: LearningSessionCreateRequest,
  background_tasks: BackgroundTasks,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  sessions_repo: LearningSessionsRepository = Depends(get_learning_sessions_repo),  # noqa: B008
  emails_repo: EmailsRepository = Depends(get_emails_repo),  # noqa: B008
  runner: LearningRunner = Depends(get_learning_runner),  # noqa: B008
) -> LearningSessionCreateResponse:
  """
  Start learning reply patterns from the caller's email.

  Returns immediately; poll `GET /v1/learning/sessions/{session_id}` for progress.
  When a session is already running for the user it is returned instead.
  """
  return await learning_service.start_learning_session(db, current_user, payload, sessions_repo=sessions_repo, emails_repo=emails_repo, schedule=lambda request: background_tasks.add_task(runner, request))


@router.get("/sessions", response_model=LearningSessionListResponse)
async def list_learning_sessions(
  limit: int = Query(20, ge=1, le=100),  # noqa: B008
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  sessions_repo: LearningSessionsRepository = Depends(get_learning_sessions_repo),  # noqa: B008
) -> LearningSessionListResponse:
  sessions = await learning_service.list_sessions(sessions_repo, current_user, limit=limit)
  return LearningSessionListResponse(sessions=sessions)


@router.get("/sessions/{session_id}", response_model=LearningSessionStatusResponse)
async def get_learning_session(
  session_id: str,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  sessions_repo: LearningSessionsRepository = Depends(get_learning_sessions_repo),  # noqa: B008
) -> LearningSessionStatusResponse:
  """Poll a session's status, progress and time estimate."""
  return await learning_service.get_session_status(sessions_repo, current_user, session_id)


@router.post("/sessions/{session_id}/cancel", response_model=LearningSessionStatusResponse)
async def cancel_learning_session(
  session_id: str,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  sessions_repo: LearningSessionsRepository = Depends(get_learning_sessions_repo),  # noqa: B008
) -> LearningSessionStatusResponse:
  return await learning_service.cancel_session(sessions_repo, current_user, session_id)


@router.get("/selection/preview", response_model=SelectionPreviewResponse)
async def preview_email_selection(
  organization_id: str | None = Query(None),  # noqa: B008
  max_emails: int | None = Query(None, ge=1, le=5000),  # noqa: B008
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  emails_repo: EmailsRepository = Depends(get_emails_repo),  # noqa: B008
) -> SelectionPreviewResponse:
  """Show which emails a session would analyze for the caller's tier. Makes no LLM calls."""
  return await learning_service.preview_selection(db, current_user, organization_id=organization_id, max_emails=max_emails, emails_repo=emails_repo)

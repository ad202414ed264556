from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from aris.api.deps import LearningRunner, get_db_session, get_emails_repo, get_learning_runner, get_learning_sessions_repo
from aris.api.models import WeeklyLearningResponse
from aris.config import Settings, get_settings
from aris.services.organizations import lookup_organization_tier
from aris.services.weekly_learning import run_weekly_learning
from aris.storage.emails_repo import EmailsRepository
from aris.storage.learning_repo import LearningSessionsRepository

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


def require_task_secret(settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_aris_task_secret: str | None = Header(default=None)) -> None:
  """Reject scheduler calls that do not carry the shared task secret."""
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  shared_secret_valid = secrets.compare_digest((x_aris_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), f"Bearer {settings.task_secret}")
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to an internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


@router.post("/weekly-learning", response_model=WeeklyLearningResponse, dependencies=[Depends(require_task_secret)])
async def weekly_learning_task(
  background_tasks: BackgroundTasks,
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  sessions_repo: LearningSessionsRepository = Depends(get_learning_sessions_repo),  # noqa: B008
  emails_repo: EmailsRepository = Depends(get_emails_repo),  # noqa: B008
  runner: LearningRunner = Depends(get_learning_runner),  # noqa: B008
) -> WeeklyLearningResponse:
  """Start incremental learning for every user with enough new mail since their last session."""

  async def tier_for(organization_id: str | None) -> str:
    return await lookup_organization_tier(db, organization_id)

  summary = await run_weekly_learning(sessions_repo=sessions_repo, emails_repo=emails_repo, tier_for=tier_for, schedule=lambda request: background_tasks.add_task(runner, request))
  return WeeklyLearningResponse(**summary.to_dict())

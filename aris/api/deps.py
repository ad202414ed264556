"""Shared FastAPI dependencies for repositories and background runners."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import partial

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from aris.config import Settings, get_settings
from aris.core.database import get_db
from aris.learning.worker import LearningRequest
from aris.services.background_processor import BackgroundAIProcessor, get_background_processor
from aris.services.learning import run_learning_session
from aris.storage.emails_repo import EmailsRepository
from aris.storage.factory import _get_emails_repo, _get_learning_repo
from aris.storage.learning_repo import LearningSessionsRepository

LearningRunner = Callable[[LearningRequest], Awaitable[None]]


async def get_db_session(session: AsyncSession = Depends(get_db)) -> AsyncSession:  # noqa: B008
  """Dependency to get the database session."""
  return session


def get_learning_sessions_repo(settings: Settings = Depends(get_settings)) -> LearningSessionsRepository:  # noqa: B008
  return _get_learning_repo(settings)


def get_emails_repo(settings: Settings = Depends(get_settings)) -> EmailsRepository:  # noqa: B008
  return _get_emails_repo(settings)


def get_learning_runner(settings: Settings = Depends(get_settings)) -> LearningRunner:  # noqa: B008
  """Coroutine function that runs one learning session in the background."""
  return partial(run_learning_session, settings=settings)


def get_ai_processor() -> BackgroundAIProcessor:
  return get_background_processor()

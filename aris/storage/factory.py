"""Repository factories used by services and background work."""

from __future__ import annotations

from aris.config import Settings
from aris.storage.ai_cache_repo import AICacheRepository
from aris.storage.emails_repo import EmailsRepository
from aris.storage.learning_repo import LearningSessionsRepository


def _require_dsn(settings: Settings) -> None:
  if not settings.pg_dsn:
    raise ValueError("ARIS_PG_DSN must be set to use the Postgres repositories.")


def _get_learning_repo(settings: Settings) -> LearningSessionsRepository:
  """Return the learning sessions repository."""
  from aris.storage.postgres_learning_repo import PostgresLearningSessionsRepository

  _require_dsn(settings)
  return PostgresLearningSessionsRepository()


def _get_emails_repo(settings: Settings) -> EmailsRepository:
  """Return the email index repository."""
  from aris.storage.postgres_emails_repo import PostgresEmailsRepository

  _require_dsn(settings)
  return PostgresEmailsRepository()


def _get_ai_cache_repo(settings: Settings) -> AICacheRepository:
  """Return the AI cache repository."""
  from aris.storage.postgres_ai_cache_repo import PostgresAICacheRepository

  _require_dsn(settings)
  return PostgresAICacheRepository()

"""Weekly incremental learning across every user with a connected mailbox."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass

from sqlalchemy.exc import SQLAlchemyError

from aris.services.learning import Scheduler, learning_request_for, open_session
from aris.storage.emails_repo import EmailsRepository
from aris.storage.learning_repo import LearningSessionsRepository

logger = logging.getLogger(__name__)

RECENT_LEARNING_WINDOW = datetime.timedelta(days=5)
NEW_EMAIL_WINDOW = datetime.timedelta(days=7)
MIN_NEW_EMAILS = 10

TierLookup = Callable[[str | None], Awaitable[str]]


@dataclass
class WeeklyLearningSummary:
  total_users: int = 0
  started: int = 0
  skipped: int = 0
  failed: int = 0

  def to_dict(self) -> dict[str, int]:
    return asdict(self)


async def _should_learn(user_id: str, *, sessions_repo: LearningSessionsRepository, emails_repo: EmailsRepository, now: datetime.datetime) -> tuple[bool, str]:
  if await sessions_repo.find_active_session(user_id) is not None:
    return False, "a session is already running"

  last = await sessions_repo.find_latest_completed(user_id)
  last_completed = last.completed_at if last is not None else None
  if last_completed is not None and now - last_completed < RECENT_LEARNING_WINDOW:
    return False, f"last learning finished {(now - last_completed).days} days ago"

  since = now - NEW_EMAIL_WINDOW
  if last_completed is not None and last_completed > since:
    since = last_completed
  new_emails = await emails_repo.count_emails_since(user_id, since)
  if new_emails < MIN_NEW_EMAILS:
    return False, f"only {new_emails} new emails"
  return True, f"{new_emails} new emails"


async def run_weekly_learning(*, sessions_repo: LearningSessionsRepository, emails_repo: EmailsRepository, tier_for: TierLookup, schedule: Scheduler, now: datetime.datetime | None = None) -> WeeklyLearningSummary:
  """Start a learning session for every user with enough new mail; one user's failure does not stop the run."""
  now = now or datetime.datetime.now(datetime.UTC)
  users = await emails_repo.list_users_with_active_accounts()
  summary = WeeklyLearningSummary(total_users=len(users))
  logger.info("Weekly learning: %d users with active email accounts", len(users))

  for user_id, organization_id in users:
    try:
      eligible, reason = await _should_learn(user_id, sessions_repo=sessions_repo, emails_repo=emails_repo, now=now)
      if not eligible:
        logger.info("Weekly learning: skipping user %s (%s)", user_id, reason)
        summary.skipped += 1
        continue

      tier = await tier_for(organization_id)
      record, created = await open_session(sessions_repo, user_id=user_id, tier=tier, organization_id=organization_id)
      if not created:
        summary.skipped += 1
        continue
      schedule(learning_request_for(record, tier))
      summary.started += 1
      logger.info("Weekly learning: started session %s for user %s (%s)", record.session_id, user_id, reason)
    except SQLAlchemyError:
      logger.error("Weekly learning failed for user %s", user_id, exc_info=True)
      summary.failed += 1

  logger.info("Weekly learning finished: %s", summary.to_dict())
  return summary

"""Learning session repository interface."""

from __future__ import annotations

from typing import Any, Protocol

from aris.learning.models import LearnedPattern, LearningSessionRecord, LearningStatus


class LearningSessionsRepository(Protocol):
  """Persistence contract for learning sessions and the patterns they save."""

  async def create_session(self, record: LearningSessionRecord) -> LearningSessionRecord:
    """Persist a new session row.

    When the user already has an active session, that session is returned
    instead and nothing is written.
    """

  async def get_session(self, session_id: str) -> LearningSessionRecord | None:
    """Fetch a session by id."""

  async def find_active_session(self, user_id: str) -> LearningSessionRecord | None:
    """Return the newest `starting`/`processing` session for the user, if any."""

  async def find_latest_completed(self, user_id: str) -> LearningSessionRecord | None:
    """Return the most recently completed session for the user."""

  async def list_sessions(self, user_id: str, *, limit: int = 20) -> list[LearningSessionRecord]:
    """List a user's sessions, newest first."""

  async def transition(self, session_id: str, status: LearningStatus, **fields: Any) -> LearningSessionRecord | None:
    """Write `status` plus `fields` only when the current status allows it.

    Returns the updated record, or None when the session is missing or the
    stored status is not an allowed predecessor of `status`.
    """

  async def save_patterns(self, *, session_id: str, user_id: str, organization_id: str | None, patterns: list[LearnedPattern]) -> int:
    """Persist learned patterns and return how many were written."""

"""Progress tracking for learning sessions."""

from __future__ import annotations

import datetime
from typing import Any

from aris.learning.models import InvalidStatusTransitionError, LearningSessionError, LearningSessionRecord, LearningStatus
from aris.storage.learning_repo import LearningSessionsRepository

STARTED_PROGRESS = 5
SELECTION_DONE_PROGRESS = 15
ANALYSIS_START_PROGRESS = 20
ANALYSIS_END_PROGRESS = 85
SAVING_PROGRESS = 95


class LearningCancelledError(Exception):
  """Raised inside the background routine once the session has been cancelled."""


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


def analysis_progress(done_batches: int, total_batches: int) -> int:
  """Map finished analysis batches onto the 20-85% band."""
  if total_batches <= 0:
    return ANALYSIS_END_PROGRESS
  span = ANALYSIS_END_PROGRESS - ANALYSIS_START_PROGRESS
  return ANALYSIS_START_PROGRESS + round(span * min(done_batches, total_batches) / total_batches)


class LearningProgressTracker:
  """Write session progress and detect cancellation on every write.

  Every write is a conditional status update. When the repository refuses it,
  the stored row is re-read: a `cancelled` session raises
  LearningCancelledError so the worker stops, anything else is an invalid
  transition.
  """

  def __init__(self, *, session_id: str, sessions_repo: LearningSessionsRepository) -> None:
    self._session_id = session_id
    self._repo = sessions_repo
    self._progress = 0

  @property
  def progress(self) -> int:
    return self._progress

  async def _write(self, status: LearningStatus, **fields: Any) -> LearningSessionRecord:
    record = await self._repo.transition(self._session_id, status, **fields)
    if record is not None:
      self._progress = record.progress
      return record

    current = await self._repo.get_session(self._session_id)
    if current is None:
      raise LearningSessionError(f"Learning session {self._session_id} no longer exists.")
    if current.status == "cancelled":
      raise LearningCancelledError(f"Learning session {self._session_id} was cancelled.")
    raise InvalidStatusTransitionError(self._session_id, current.status, status)

  async def start(self) -> LearningSessionRecord:
    """Move starting -> processing."""
    return await self._write("processing", progress=STARTED_PROGRESS)

  async def report(self, progress: int, **fields: Any) -> LearningSessionRecord:
    """Record progress; never lets the stored percentage move backwards."""
    clamped = min(max(int(progress), self._progress), 99)
    return await self._write("processing", progress=clamped, **fields)

  async def complete(self, **fields: Any) -> LearningSessionRecord:
    return await self._write("completed", progress=100, completed_at=_utcnow(), **fields)

  async def fail(self, message: str) -> LearningSessionRecord | None:
    """Mark the session failed; returns None when it already reached a terminal status."""
    return await self._repo.transition(self._session_id, "failed", error_message=message[:2000], completed_at=_utcnow())

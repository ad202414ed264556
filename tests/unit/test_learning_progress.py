from __future__ import annotations

import pytest

from conftest import NOW, InMemoryLearningSessionsRepo

from aris.learning.models import InvalidStatusTransitionError, LearningSessionRecord, can_transition
from aris.learning.progress import LearningCancelledError, LearningProgressTracker, analysis_progress

USER = "00000000-0000-0000-0000-000000000001"


async def _tracker(repo: InMemoryLearningSessionsRepo, session_id: str = "session-1") -> LearningProgressTracker:
  await repo.create_session(LearningSessionRecord(session_id=session_id, user_id=USER, status="starting", max_emails=100, started_at=NOW))
  return LearningProgressTracker(session_id=session_id, sessions_repo=repo)


def test_transition_table() -> None:
  assert can_transition("starting", "processing")
  assert can_transition("processing", "processing")
  assert can_transition("processing", "completed")
  assert not can_transition("starting", "completed")
  assert not can_transition("completed", "processing")
  assert not can_transition("cancelled", "failed")


def test_analysis_progress_maps_batches_onto_band() -> None:
  assert analysis_progress(0, 4) == 20
  assert analysis_progress(1, 4) == 36
  assert analysis_progress(4, 4) == 85
  assert analysis_progress(0, 0) == 85


@pytest.mark.anyio
async def test_report_never_moves_progress_backwards() -> None:
  repo = InMemoryLearningSessionsRepo()
  tracker = await _tracker(repo)

  await tracker.start()
  await tracker.report(50)
  record = await tracker.report(30)

  assert record.progress == 50
  assert (await tracker.report(150)).progress == 99


@pytest.mark.anyio
async def test_complete_requires_processing() -> None:
  repo = InMemoryLearningSessionsRepo()
  tracker = await _tracker(repo)

  with pytest.raises(InvalidStatusTransitionError):
    await tracker.complete()


@pytest.mark.anyio
async def test_cancelled_session_raises_on_next_write() -> None:
  repo = InMemoryLearningSessionsRepo()
  tracker = await _tracker(repo)
  await tracker.start()

  await repo.transition("session-1", "cancelled", completed_at=NOW)

  with pytest.raises(LearningCancelledError):
    await tracker.report(40)
  assert (await repo.get_session("session-1")).status == "cancelled"


@pytest.mark.anyio
async def test_fail_is_a_no_op_once_terminal() -> None:
  repo = InMemoryLearningSessionsRepo()
  tracker = await _tracker(repo)
  await tracker.start()
  completed = await tracker.complete(patterns_found=3)

  assert completed.progress == 100
  assert await tracker.fail("late error") is None
  assert repo.status_history["session-1"] == ["starting", "processing", "completed"]

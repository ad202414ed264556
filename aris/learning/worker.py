"""Background routine that runs one email learning session end to end."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from aris.ai.agents.pattern_analyst import PatternAnalystAgent, PatternBatch
from aris.ai.providers.base import AIModel, LLMProviderError
from aris.learning.patterns import batched, build_email_pairs, build_recommendations, calculate_pattern_quality, group_pairs_by_language, merge_similar_patterns
from aris.learning.progress import ANALYSIS_START_PROGRESS, SAVING_PROGRESS, SELECTION_DONE_PROGRESS, LearningCancelledError, LearningProgressTracker, analysis_progress
from aris.services.email_selection import SmartEmailSelector
from aris.storage.emails_repo import EmailsRepository
from aris.storage.learning_repo import LearningSessionsRepository

logger = logging.getLogger(__name__)

Notifier = Callable[..., Awaitable[None]]
_BATCH_FAILURE_NOTE = "Some patterns could not be analyzed due to processing errors."


@dataclass(frozen=True)
class LearningRequest:
  """Immutable parameters for one background learning run."""

  session_id: str
  user_id: str
  max_emails: int
  tier: str
  organization_id: str | None = None
  account_id: str | None = None


class _UsageTotals:
  def __init__(self) -> None:
    self.tokens = 0
    self.cost_usd = 0.0

  def add(self, payload: dict[str, Any]) -> None:
    self.tokens += int(payload.get("total_tokens") or 0)
    self.cost_usd += float(payload.get("cost_usd") or 0.0)


class EmailLearningProcessor:
  """Select emails, learn reply patterns from them and record the outcome on the session row."""

  def __init__(self, *, sessions_repo: LearningSessionsRepository, emails_repo: EmailsRepository, model_factory: Callable[[], AIModel], notifier: Notifier, batch_size: int = 10, batch_delay_seconds: float = 1.0, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> None:
    self._sessions_repo = sessions_repo
    self._emails_repo = emails_repo
    self._model_factory = model_factory
    self._notifier = notifier
    self._batch_size = max(batch_size, 1)
    self._batch_delay_seconds = batch_delay_seconds
    self._sleep = sleep

  async def process_session(self, request: LearningRequest) -> None:
    """Run the session; every exit path leaves the row in a terminal status."""
    tracker = LearningProgressTracker(session_id=request.session_id, sessions_repo=self._sessions_repo)
    try:
      await tracker.start()
      await self._run(request, tracker)
    except LearningCancelledError:
      logger.info("Learning session %s cancelled; stopping at %d%%", request.session_id, tracker.progress)
    except Exception as exc:  # noqa: BLE001
      logger.error("Learning session %s failed", request.session_id, exc_info=True)
      await self._record_failure(request, tracker, str(exc) or type(exc).__name__)

  async def _run(self, request: LearningRequest, tracker: LearningProgressTracker) -> None:
    accounts = await self._emails_repo.list_active_accounts(request.user_id, account_id=request.account_id)
    if not accounts:
      note = "No active email accounts found. Connect an email account to start learning."
      await tracker.complete(recommendations=[note])
      await self._notify(request, title="Email Learning Complete", message=note, kind="warning")
      return

    model = self._model_factory()
    selection = await SmartEmailSelector(self._emails_repo).select(request.user_id, tier=request.tier, organization_id=request.organization_id, max_emails=request.max_emails, account_ids=[account.account_id for account in accounts])
    await tracker.report(SELECTION_DONE_PROGRESS, emails_selected=selection.total_selected, selection=selection.summary())

    pairs = build_email_pairs(selection.received, selection.sent)
    batches = [PatternBatch(pairs=chunk, language=language) for language, group in group_pairs_by_language(pairs).items() for chunk in batched(group, self._batch_size)]
    logger.info("Learning session %s: %d emails selected, %d reply pairs, %d batches", request.session_id, selection.total_selected, len(pairs), len(batches))
    await tracker.report(ANALYSIS_START_PROGRESS)

    usage = _UsageTotals()
    agent = PatternAnalystAgent(model=model, usage_sink=usage.add)
    learned = []
    recommendations: list[str] = []
    emails_processed = 0
    for index, batch in enumerate(batches, start=1):
      try:
        analysis = await agent.run(batch, user_id=request.user_id)
        learned.extend(analysis.patterns)
      except LLMProviderError:
        # One bad batch should not discard what the other batches learned.
        logger.warning("Pattern batch %d/%d failed for session %s", index, len(batches), request.session_id, exc_info=True)
        if _BATCH_FAILURE_NOTE not in recommendations:
          recommendations.append(_BATCH_FAILURE_NOTE)
      emails_processed += len(batch.pairs) * 2
      await tracker.report(analysis_progress(index, len(batches)), emails_processed=emails_processed, tokens_used=usage.tokens, cost_usd=usage.cost_usd)
      if index < len(batches) and self._batch_delay_seconds > 0:
        await self._sleep(self._batch_delay_seconds)

    merged = merge_similar_patterns(learned)
    await tracker.report(SAVING_PROGRESS)
    saved = await self._sessions_repo.save_patterns(session_id=request.session_id, user_id=request.user_id, organization_id=request.organization_id, patterns=merged)
    quality = calculate_pattern_quality(merged)
    recommendations.extend(build_recommendations(merged, quality, pairs_found=len(pairs)))

    await tracker.complete(patterns_found=saved, emails_processed=emails_processed, tokens_used=usage.tokens, cost_usd=usage.cost_usd, quality_score=quality, recommendations=recommendations)
    logger.info("Learning session %s completed: %d patterns, %d tokens, $%.4f", request.session_id, saved, usage.tokens, usage.cost_usd)
    kind = "success" if saved > 0 else "warning"
    await self._notify(request, title="Email Learning Complete", message=f"Learned {saved} reply patterns from {emails_processed} emails.", kind=kind, data={"patterns_found": saved, "quality_score": quality})

  async def _record_failure(self, request: LearningRequest, tracker: LearningProgressTracker, message: str) -> None:
    try:
      record = await tracker.fail(message)
    except SQLAlchemyError:
      logger.error("Could not record failure for learning session %s", request.session_id, exc_info=True)
      return
    if record is None:
      logger.info("Learning session %s already terminal; failure not recorded", request.session_id)
      return
    await self._notify(request, title="Email Learning Failed", message=f"Learning failed: {message}", kind="error")

  async def _notify(self, request: LearningRequest, *, title: str, message: str, kind: str, data: dict[str, Any] | None = None) -> None:
    payload = {"session_id": request.session_id, **(data or {})}
    await self._notifier(user_id=request.user_id, organization_id=request.organization_id, title=title, message=message, kind=kind, action_url=f"/learning/sessions/{request.session_id}", data=payload)

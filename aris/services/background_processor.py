"""Per-email AI analysis and reply drafting with result caching.

Runs when an email arrives (or when a client asks for it) so the UI can show
analysis and a draft without waiting on the LLM.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Any, Literal

from sqlalchemy.exc import SQLAlchemyError

from aris.ai.agents.email_analyst import EmailAnalystAgent, ReplyDrafterAgent
from aris.ai.providers.base import AIModel, LLMProviderError
from aris.config import Settings, get_settings
from aris.services.ai_cache import AICache, get_ai_cache
from aris.services.email_filter import should_process_email
from aris.services.model_routing import COMPLEXITY_COMPLEX, COMPLEXITY_SIMPLE, analysis_model_name, get_model
from aris.storage.emails_repo import EmailRecord, EmailsRepository

logger = logging.getLogger(__name__)

Priority = Literal["low", "normal", "high"]
BATCH_CONCURRENCY = 5
COMPLEXITY_STANDARD = "standard"

SIMPLE_KEYWORDS = ("where is my order", "order status", "tracking number", "thank you", "received", "confirmation")
COMPLEX_KEYWORDS = ("complaint", "refund", "legal", "escalat", "manager", "cancel", "disappointed", "unacceptable")


@dataclass(frozen=True)
class ProcessingContext:
  email_id: str
  user_id: str
  organization_id: str | None = None
  priority: Priority = "normal"
  skip_draft: bool = False
  force_reprocess: bool = False


@dataclass
class ProcessingResult:
  success: bool
  email_id: str
  analysis: dict[str, Any] | None = None
  draft: dict[str, Any] | None = None
  cached: bool = False
  skipped: bool = False
  reason: str | None = None
  category: str | None = None
  error: str | None = None

  def to_dict(self) -> dict[str, Any]:
    return asdict(self)


def determine_complexity(email: EmailRecord) -> str:
  """Classify an email so hard conversations get the stronger model."""
  text = f"{email.subject} {email.body or email.preview}".lower()
  if any(keyword in text for keyword in COMPLEX_KEYWORDS):
    return COMPLEXITY_COMPLEX
  if any(keyword in text for keyword in SIMPLE_KEYWORDS):
    return COMPLEXITY_SIMPLE
  return COMPLEXITY_STANDARD


class BackgroundAIProcessor:
  """Analyze and draft replies for emails, sharing work between concurrent callers."""

  def __init__(self, *, emails_repo: EmailsRepository, cache: AICache, model_for: Callable[[str], AIModel]) -> None:
    self._emails_repo = emails_repo
    self._cache = cache
    self._model_for = model_for
    self._in_flight: dict[str, asyncio.Task[ProcessingResult]] = {}

  @property
  def cache(self) -> AICache:
    return self._cache

  @property
  def in_flight(self) -> int:
    return len(self._in_flight)

  async def process_email(self, context: ProcessingContext) -> ProcessingResult:
    """Process one email; callers for an email already in progress await the same task.

    In-flight work is keyed by email id alone, so a request with different
    options (``force_reprocess``, ``skip_draft``) that arrives mid-run gets the
    running task's result rather than starting its own.
    """
    task = self._in_flight.get(context.email_id)
    if task is None:
      task = asyncio.create_task(self._process(context))
      self._in_flight[context.email_id] = task
      task.add_done_callback(lambda _done, key=context.email_id: self._in_flight.pop(key, None))
    else:
      logger.info("Email %s already processing; awaiting the running task", context.email_id)
    # A cancelled waiter must not cancel the work other callers share.
    return await asyncio.shield(task)

  async def process_batch(self, contexts: Sequence[ProcessingContext]) -> list[ProcessingResult]:
    logger.info("Processing batch of %d emails", len(contexts))
    results: list[ProcessingResult] = []
    for start in range(0, len(contexts), BATCH_CONCURRENCY):
      chunk = contexts[start : start + BATCH_CONCURRENCY]
      outcomes = await asyncio.gather(*(self.process_email(context) for context in chunk), return_exceptions=True)
      for context, outcome in zip(chunk, outcomes, strict=True):
        if isinstance(outcome, BaseException):
          results.append(ProcessingResult(success=False, email_id=context.email_id, error=str(outcome) or type(outcome).__name__))
        else:
          results.append(outcome)
    return results

  async def _process(self, context: ProcessingContext) -> ProcessingResult:
    email_id = context.email_id
    try:
      if not context.force_reprocess:
        cached = await self._cache.get(email_id)
        if cached is not None:
          logger.info("Using cached AI results for email %s", email_id)
          return ProcessingResult(success=True, email_id=email_id, analysis=cached.analysis, draft=cached.draft, cached=True)

      email = await self._emails_repo.get_email(email_id)
      if email is None or email.user_id != context.user_id:
        return ProcessingResult(success=False, email_id=email_id, error=f"Email {email_id} not found")

      verdict = should_process_email(sender=email.sender_email, subject=email.subject, body=email.body or email.preview)
      if not verdict.should_process:
        logger.info("Skipping email %s: %s", email_id, verdict.reason)
        return ProcessingResult(success=True, email_id=email_id, skipped=True, reason=verdict.reason, category=verdict.category)

      complexity = determine_complexity(email)
      model = self._model_for(complexity)
      logger.info("Processing email %s complexity=%s model=%s priority=%s", email_id, complexity, model.name, context.priority)
      return await self._analyze_and_draft(context, email, model)
    except (SQLAlchemyError, LLMProviderError, OSError) as exc:
      logger.error("AI processing failed for email %s", email_id, exc_info=True)
      return ProcessingResult(success=False, email_id=email_id, error=str(exc) or type(exc).__name__)

  async def _analyze_and_draft(self, context: ProcessingContext, email: EmailRecord, model: AIModel) -> ProcessingResult:
    jobs = [EmailAnalystAgent(model=model).run(email, user_id=context.user_id)]
    if not context.skip_draft:
      jobs.append(ReplyDrafterAgent(model=model).run(email, user_id=context.user_id))
    outcomes = await asyncio.gather(*jobs, return_exceptions=True)

    values: list[dict[str, Any] | None] = []
    errors: list[str] = []
    for label, outcome in zip(("analysis", "draft"), outcomes, strict=False):
      if isinstance(outcome, Exception):
        logger.warning("%s task failed for email %s: %s", label.capitalize(), context.email_id, outcome)
        errors.append(f"{label}: {outcome}")
        values.append(None)
      elif isinstance(outcome, BaseException):
        raise outcome
      else:
        values.append(outcome)
    analysis = values[0]
    draft = values[1] if len(values) > 1 else None

    if analysis is None and draft is None:
      return ProcessingResult(success=False, email_id=context.email_id, error="; ".join(errors))
    await self._cache.put(context.email_id, analysis=analysis, draft=draft, organization_id=context.organization_id or email.organization_id)
    return ProcessingResult(success=True, email_id=context.email_id, analysis=analysis, draft=draft, error="; ".join(errors) or None)


def _model_router(settings: Settings) -> Callable[[str], AIModel]:
  def model_for(complexity: str) -> AIModel:
    return get_model(settings, analysis_model_name(settings, complexity))

  return model_for


@lru_cache(maxsize=1)
def get_background_processor() -> BackgroundAIProcessor:
  from aris.storage.factory import _get_emails_repo

  settings = get_settings()
  return BackgroundAIProcessor(emails_repo=_get_emails_repo(settings), cache=get_ai_cache(), model_for=_model_router(settings))

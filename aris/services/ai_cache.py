"""Two-level cache for per-email AI results.

The database row is authoritative. An in-process TTL cache keeps results
available when the database is unreachable and is always written first.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from cachetools import TTLCache
from sqlalchemy.exc import SQLAlchemyError

from aris.config import get_settings
from aris.storage.ai_cache_repo import AICacheRecord, AICacheRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


@dataclass(frozen=True)
class CachedAIResult:
  email_id: str
  analysis: dict[str, Any] | None
  draft: dict[str, Any] | None
  created_at: datetime.datetime
  source: str


class AICache:
  """Look up and store analysis/draft results keyed by email id."""

  def __init__(self, repo: AICacheRepository | None, *, ttl_seconds: int = 86400, maxsize: int = 1000, clock: Clock = _utcnow) -> None:
    self._repo = repo
    self._ttl = datetime.timedelta(seconds=ttl_seconds)
    self._clock = clock
    # Share the clock with the memory tier so both levels expire together.
    self._memory: TTLCache[str, CachedAIResult] = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=lambda: clock().timestamp())

  def is_fresh(self, created_at: datetime.datetime, now: datetime.datetime) -> bool:
    return now - created_at < self._ttl

  async def get(self, email_id: str) -> CachedAIResult | None:
    now = self._clock()
    if self._repo is not None:
      try:
        record = await self._repo.get_entry(email_id)
      except (SQLAlchemyError, OSError):
        logger.warning("AI cache database read failed for email %s; using memory cache", email_id, exc_info=True)
      else:
        if record is not None and self.is_fresh(record.created_at, now):
          return CachedAIResult(email_id=email_id, analysis=record.analysis_result, draft=record.draft_result, created_at=record.created_at, source="database")

    return self._memory.get(email_id)

  async def put(self, email_id: str, *, analysis: dict[str, Any] | None, draft: dict[str, Any] | None, organization_id: str | None = None) -> CachedAIResult:
    now = self._clock()
    entry = CachedAIResult(email_id=email_id, analysis=analysis, draft=draft, created_at=now, source="memory")
    self._memory[email_id] = entry

    if self._repo is None:
      return entry
    try:
      await self._repo.upsert_entry(AICacheRecord(email_id=email_id, analysis_result=analysis, draft_result=draft, created_at=now, organization_id=organization_id))
    except (SQLAlchemyError, OSError):
      logger.warning("AI cache database write failed for email %s; kept in memory only", email_id, exc_info=True)
    else:
      logger.debug("Cached AI results for email %s", email_id)
    return entry

  def invalidate(self, email_id: str) -> None:
    self._memory.pop(email_id, None)


@lru_cache(maxsize=1)
def get_ai_cache() -> AICache:
  """Process-wide cache; falls back to memory only when no database is configured."""
  from aris.storage.factory import _get_ai_cache_repo

  settings = get_settings()
  repo = _get_ai_cache_repo(settings) if settings.pg_dsn else None
  return AICache(repo, ttl_seconds=settings.ai_cache_ttl_seconds, maxsize=settings.ai_memory_cache_size)

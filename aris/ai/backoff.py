"""Retry logic with a fixed backoff schedule for rate-limited LLM calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from openai import RateLimitError

T = TypeVar("T")
logger = logging.getLogger(__name__)

DEFAULT_DELAYS: tuple[float, ...] = (5, 20, 50)


def _is_retryable(exc: Exception) -> bool:
  if isinstance(exc, RateLimitError):
    return True
  error_msg = str(exc)
  return "429" in error_msg or "Too Many Requests" in error_msg or "Quota Exceeded" in error_msg


async def retry_with_backoff(func: Callable[..., Awaitable[T]], *args: Any, delays: Sequence[float] = DEFAULT_DELAYS, **kwargs: Any) -> T:
  """
  Execute a coroutine function, retrying only on rate-limit/quota errors.

  Delays: 5s, 20s, 50s, then one final attempt whose error propagates.
  """
  for attempt, delay in enumerate(delays):
    try:
      return await func(*args, **kwargs)
    except Exception as exc:
      if not _is_retryable(exc):
        raise
      logger.warning("Retry attempt %d/%d needed. Error: %s. Retrying in %ss...", attempt + 1, len(delays), exc, delay)
      await asyncio.sleep(delay)

  return await func(*args, **kwargs)

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError

from aris.core.database import get_session_factory
from aris.schema.sql import LLMAuditLog
from aris.utils.ids import parse_uuid

logger = logging.getLogger(__name__)


async def log_llm_interaction(*, user_id: str | uuid.UUID | None, model_name: str, purpose: str, prompt_summary: str | None = None, tokens_used: int | None = None, status: str | None = None) -> None:
  """Write an LLM audit row when auditing is enabled; failures are logged, never raised."""
  from aris.config import get_settings

  settings = get_settings()
  if not settings.llm_audit_enabled:
    return

  session_factory = get_session_factory()
  if not session_factory:
    logger.warning("Database not configured, skipping LLM audit log.")
    return

  try:
    async with session_factory() as session:
      session.add(LLMAuditLog(user_id=parse_uuid(user_id), model_name=model_name, purpose=purpose, prompt_summary=prompt_summary, tokens_used=tokens_used, status=status))
      await session.commit()
  except SQLAlchemyError:
    logger.error("Failed to log LLM interaction model=%s purpose=%s", model_name, purpose, exc_info=True)

"""Postgres-backed repository for learning sessions using SQLAlchemy."""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from aris.core.database import get_session_factory
from aris.learning.models import ALLOWED_PREDECESSORS, LearnedPattern, LearningSessionRecord, LearningStatus
from aris.schema.learning import EmailPattern, LearningSession
from aris.storage.learning_repo import LearningSessionsRepository
from aris.utils.ids import parse_uuid

_MUTABLE_FIELDS = frozenset({"progress", "emails_selected", "emails_processed", "patterns_found", "cost_usd", "tokens_used", "quality_score", "selection", "recommendations", "error_message", "completed_at"})


def _now() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


def _optional_uuid(value: str | None) -> uuid.UUID | None:
  return uuid.UUID(value) if value else None


class PostgresLearningSessionsRepository(LearningSessionsRepository):
  """Persist learning sessions and patterns to Postgres."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_session(self, record: LearningSessionRecord) -> LearningSessionRecord:
    async with self._session_factory() as session:
      row = LearningSession(
        id=uuid.UUID(record.session_id),
        user_id=uuid.UUID(record.user_id),
        organization_id=_optional_uuid(record.organization_id),
        account_id=_optional_uuid(record.account_id),
        status=record.status,
        progress=record.progress,
        max_emails=record.max_emails,
        started_at=record.started_at,
        updated_at=record.updated_at or record.started_at,
      )
      session.add(row)
      try:
        await session.commit()
      except IntegrityError:
        # Lost a race against another start for the same user; hand back the winner.
        await session.rollback()
        existing = await self.find_active_session(record.user_id)
        if existing is None:
          raise
        return existing
      return record

  async def get_session(self, session_id: str) -> LearningSessionRecord | None:
    parsed = parse_uuid(session_id)
    if parsed is None:
      return None
    async with self._session_factory() as session:
      row = await session.get(LearningSession, parsed)
      return self._model_to_record(row) if row is not None else None

  async def find_active_session(self, user_id: str) -> LearningSessionRecord | None:
    async with self._session_factory() as session:
      stmt = select(LearningSession).where(LearningSession.user_id == uuid.UUID(user_id), LearningSession.status.in_(("starting", "processing"))).order_by(LearningSession.started_at.desc()).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      return self._model_to_record(row) if row is not None else None

  async def find_latest_completed(self, user_id: str) -> LearningSessionRecord | None:
    async with self._session_factory() as session:
      stmt = select(LearningSession).where(LearningSession.user_id == uuid.UUID(user_id), LearningSession.status == "completed").order_by(LearningSession.completed_at.desc()).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      return self._model_to_record(row) if row is not None else None

  async def list_sessions(self, user_id: str, *, limit: int = 20) -> list[LearningSessionRecord]:
    async with self._session_factory() as session:
      stmt = select(LearningSession).where(LearningSession.user_id == uuid.UUID(user_id)).order_by(LearningSession.started_at.desc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  async def transition(self, session_id: str, status: LearningStatus, **fields: Any) -> LearningSessionRecord | None:
    unknown = set(fields) - _MUTABLE_FIELDS
    if unknown:
      raise ValueError(f"Unsupported learning session fields: {sorted(unknown)}")
    allowed = ALLOWED_PREDECESSORS.get(status)
    parsed = parse_uuid(session_id)
    if not allowed or parsed is None:
      return None

    values: dict[str, Any] = {key: value for key, value in fields.items() if value is not None}
    if "cost_usd" in values:
      values["cost_usd"] = Decimal(str(values["cost_usd"]))
    values["status"] = status
    values["updated_at"] = _now()

    # The status guard in WHERE makes this a compare-and-swap: concurrent writers cannot revert a terminal session.
    stmt = update(LearningSession).where(LearningSession.id == parsed, LearningSession.status.in_(tuple(allowed))).values(**values).returning(LearningSession).execution_options(synchronize_session=False)
    async with self._session_factory() as session:
      row = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
      return self._model_to_record(row) if row is not None else None

  async def save_patterns(self, *, session_id: str, user_id: str, organization_id: str | None, patterns: list[LearnedPattern]) -> int:
    if not patterns:
      return 0
    async with self._session_factory() as session:
      for pattern in patterns:
        session.add(
          EmailPattern(
            user_id=uuid.UUID(user_id),
            organization_id=_optional_uuid(organization_id),
            session_id=uuid.UUID(session_id),
            pattern_type=pattern.pattern_type,
            context_category=pattern.context_category,
            language=pattern.language,
            trigger_keywords=list(pattern.trigger_keywords),
            response_template=pattern.response_template,
            confidence=pattern.confidence,
            example_pairs=list(pattern.example_pairs),
          )
        )
      await session.commit()
    return len(patterns)

  def _model_to_record(self, row: LearningSession) -> LearningSessionRecord:
    return LearningSessionRecord(
      session_id=str(row.id),
      user_id=str(row.user_id),
      organization_id=str(row.organization_id) if row.organization_id else None,
      account_id=str(row.account_id) if row.account_id else None,
      status=row.status,  # type: ignore[arg-type]
      progress=row.progress,
      max_emails=row.max_emails,
      emails_selected=row.emails_selected,
      emails_processed=row.emails_processed,
      patterns_found=row.patterns_found,
      cost_usd=float(row.cost_usd or 0),
      tokens_used=row.tokens_used,
      quality_score=row.quality_score,
      selection=row.selection,
      recommendations=list(row.recommendations or []),
      error_message=row.error_message,
      started_at=row.started_at,
      completed_at=row.completed_at,
      updated_at=row.updated_at,
    )

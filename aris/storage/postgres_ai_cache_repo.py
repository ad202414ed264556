"""Postgres-backed AI result cache."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from aris.core.database import get_session_factory
from aris.schema.emails import EmailAICache
from aris.storage.ai_cache_repo import AICacheRecord, AICacheRepository
from aris.utils.ids import parse_uuid


class PostgresAICacheRepository(AICacheRepository):
  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get_entry(self, email_id: str) -> AICacheRecord | None:
    parsed = parse_uuid(email_id)
    if parsed is None:
      return None
    async with self._session_factory() as session:
      stmt = select(EmailAICache).where(EmailAICache.email_id == parsed).order_by(EmailAICache.created_at.desc()).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return AICacheRecord(email_id=str(row.email_id), analysis_result=row.analysis_result, draft_result=row.draft_result, created_at=row.created_at, organization_id=str(row.organization_id) if row.organization_id else None)

  async def upsert_entry(self, record: AICacheRecord) -> None:
    organization_id = uuid.UUID(record.organization_id) if record.organization_id else None
    stmt = insert(EmailAICache).values(email_id=uuid.UUID(record.email_id), organization_id=organization_id, analysis_result=record.analysis_result, draft_result=record.draft_result, created_at=record.created_at, updated_at=record.created_at)
    # Refreshing created_at restarts the freshness window for re-processed emails.
    stmt = stmt.on_conflict_do_update(index_elements=[EmailAICache.email_id], set_={"analysis_result": stmt.excluded.analysis_result, "draft_result": stmt.excluded.draft_result, "created_at": stmt.excluded.created_at, "updated_at": stmt.excluded.updated_at})
    async with self._session_factory() as session:
      await session.execute(stmt)
      await session.commit()

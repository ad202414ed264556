"""Postgres-backed read access to the email index."""

from __future__ import annotations

import datetime
import uuid
from collections.abc import Sequence

from sqlalchemy import String, func, select

from aris.core.database import get_session_factory
from aris.schema.emails import Email, EmailAccount
from aris.storage.emails_repo import EmailAccountRecord, EmailRecord, EmailsRepository
from aris.utils.ids import parse_uuid


class PostgresEmailsRepository(EmailsRepository):
  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get_email(self, email_id: str) -> EmailRecord | None:
    parsed = parse_uuid(email_id)
    if parsed is None:
      return None
    async with self._session_factory() as session:
      row = await session.get(Email, parsed)
      return _email_to_record(row) if row is not None else None

  async def list_active_accounts(self, user_id: str, *, account_id: str | None = None) -> list[EmailAccountRecord]:
    stmt = select(EmailAccount).where(EmailAccount.user_id == uuid.UUID(user_id), EmailAccount.is_active.is_(True))
    if account_id is not None:
      parsed = parse_uuid(account_id)
      if parsed is None:
        return []
      stmt = stmt.where(EmailAccount.id == parsed)
    async with self._session_factory() as session:
      rows = (await session.execute(stmt)).scalars().all()
      return [EmailAccountRecord(account_id=str(row.id), user_id=str(row.user_id), organization_id=str(row.organization_id) if row.organization_id else None, email_address=row.email_address, is_active=row.is_active) for row in rows]

  async def list_candidates(self, user_id: str, *, folders: Sequence[str], limit: int, organization_id: str | None = None, account_ids: Sequence[str] | None = None) -> list[EmailRecord]:
    stmt = select(Email).where(Email.user_id == uuid.UUID(user_id), Email.folder_name.in_(tuple(folders)))
    if organization_id is not None:
      stmt = stmt.where(Email.organization_id == uuid.UUID(organization_id))
    if account_ids:
      stmt = stmt.where(Email.email_account_id.in_([uuid.UUID(value) for value in account_ids]))
    stmt = stmt.order_by(Email.received_at.desc()).limit(limit)
    async with self._session_factory() as session:
      rows = (await session.execute(stmt)).scalars().all()
      return [_email_to_record(row) for row in rows]

  async def count_emails_since(self, user_id: str, since: datetime.datetime) -> int:
    stmt = select(func.count()).select_from(Email).where(Email.user_id == uuid.UUID(user_id), Email.received_at >= since)
    async with self._session_factory() as session:
      return int((await session.execute(stmt)).scalar_one())

  async def list_users_with_active_accounts(self) -> list[tuple[str, str | None]]:
    stmt = select(EmailAccount.user_id, func.min(EmailAccount.organization_id.cast(String))).where(EmailAccount.is_active.is_(True)).group_by(EmailAccount.user_id)
    async with self._session_factory() as session:
      rows = (await session.execute(stmt)).all()
      return [(str(user_id), org_id or None) for user_id, org_id in rows]


def _email_to_record(row: Email) -> EmailRecord:
  return EmailRecord(
    email_id=str(row.id),
    account_id=str(row.email_account_id),
    user_id=str(row.user_id),
    organization_id=str(row.organization_id) if row.organization_id else None,
    message_id=row.message_id,
    subject=row.subject or "",
    preview=row.preview or "",
    body=row.body or "",
    sender_email=row.sender_email or "",
    recipient_email=row.recipient_email or "",
    folder_name=row.folder_name,
    received_at=row.received_at,
    is_read=row.is_read,
    replied=row.replied,
    word_count=row.word_count,
  )

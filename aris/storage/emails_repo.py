"""Email index repository interface and the records it returns."""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class EmailAccountRecord:
  account_id: str
  user_id: str
  organization_id: str | None
  email_address: str
  is_active: bool = True


@dataclass(frozen=True)
class EmailRecord:
  """Indexed email as used by selection scoring, pairing and the AI processor."""

  email_id: str
  account_id: str
  user_id: str
  received_at: datetime.datetime
  folder_name: str = "INBOX"
  organization_id: str | None = None
  message_id: str = ""
  subject: str = ""
  preview: str = ""
  body: str = ""
  sender_email: str = ""
  recipient_email: str = ""
  is_read: bool = False
  replied: bool = False
  word_count: int = 0


class EmailsRepository(Protocol):
  """Read access to the email index."""

  async def get_email(self, email_id: str) -> EmailRecord | None:
    """Fetch one email by id."""

  async def list_active_accounts(self, user_id: str, *, account_id: str | None = None) -> list[EmailAccountRecord]:
    """Return the user's active mailboxes, optionally narrowed to one account."""

  async def list_candidates(self, user_id: str, *, folders: Sequence[str], limit: int, organization_id: str | None = None, account_ids: Sequence[str] | None = None) -> list[EmailRecord]:
    """Return up to `limit` emails in `folders`, newest first."""

  async def count_emails_since(self, user_id: str, since: datetime.datetime) -> int:
    """Count emails received by the user after `since`."""

  async def list_users_with_active_accounts(self) -> list[tuple[str, str | None]]:
    """Return (user_id, organization_id) for every user with an active mailbox."""

"""AI result cache repository interface."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class AICacheRecord:
  email_id: str
  analysis_result: dict[str, Any] | None
  draft_result: dict[str, Any] | None
  created_at: datetime.datetime
  organization_id: str | None = None


class AICacheRepository(Protocol):
  async def get_entry(self, email_id: str) -> AICacheRecord | None:
    """Return the stored row for an email regardless of its age."""

  async def upsert_entry(self, record: AICacheRecord) -> None:
    """Insert or replace the row for `record.email_id`, resetting its timestamp."""

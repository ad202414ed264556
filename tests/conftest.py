"""Shared fixtures: in-memory repositories, a fake model and an app client with auth/db overridden."""

from __future__ import annotations

import datetime
import os
import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

os.environ.setdefault("ARIS_ALLOWED_ORIGINS", "http://localhost:3000")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from aris.ai.providers.base import AIModel, SimpleModelResponse, StructuredModelResponse  # noqa: E402
from aris.learning.models import TERMINAL_STATUSES, LearnedPattern, LearningSessionRecord, LearningStatus, can_transition  # noqa: E402
from aris.schema.sql import User  # noqa: E402
from aris.storage.ai_cache_repo import AICacheRecord  # noqa: E402
from aris.storage.emails_repo import EmailAccountRecord, EmailRecord  # noqa: E402

NOW = datetime.datetime(2026, 3, 2, 9, 0, tzinfo=datetime.UTC)


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


class InMemoryLearningSessionsRepo:
  """Learning sessions repo with the same conditional-write rules as the Postgres one."""

  def __init__(self) -> None:
    self.sessions: dict[str, LearningSessionRecord] = {}
    self.patterns: list[LearnedPattern] = []
    self.status_history: dict[str, list[str]] = {}

  async def create_session(self, record: LearningSessionRecord) -> LearningSessionRecord:
    active = await self.find_active_session(record.user_id)
    if active is not None:
      return active
    self.sessions[record.session_id] = replace(record)
    self.status_history[record.session_id] = [record.status]
    return record

  async def get_session(self, session_id: str) -> LearningSessionRecord | None:
    record = self.sessions.get(session_id)
    return replace(record) if record is not None else None

  async def find_active_session(self, user_id: str) -> LearningSessionRecord | None:
    active = [record for record in self.sessions.values() if record.user_id == user_id and record.status not in TERMINAL_STATUSES]
    return replace(max(active, key=lambda record: record.started_at)) if active else None

  async def find_latest_completed(self, user_id: str) -> LearningSessionRecord | None:
    done = [record for record in self.sessions.values() if record.user_id == user_id and record.status == "completed" and record.completed_at]
    return replace(max(done, key=lambda record: record.completed_at)) if done else None

  async def list_sessions(self, user_id: str, *, limit: int = 20) -> list[LearningSessionRecord]:
    owned = sorted((record for record in self.sessions.values() if record.user_id == user_id), key=lambda record: record.started_at, reverse=True)
    return [replace(record) for record in owned[:limit]]

  async def transition(self, session_id: str, status: LearningStatus, **fields: Any) -> LearningSessionRecord | None:
    record = self.sessions.get(session_id)
    if record is None or not can_transition(record.status, status):
      return None
    updated = replace(record, status=status, updated_at=datetime.datetime.now(datetime.UTC), **fields)
    self.sessions[session_id] = updated
    self.status_history[session_id].append(status)
    return replace(updated)

  async def save_patterns(self, *, session_id: str, user_id: str, organization_id: str | None, patterns: list[LearnedPattern]) -> int:
    self.patterns.extend(patterns)
    return len(patterns)


class InMemoryEmailsRepo:
  def __init__(self, *, accounts: Sequence[EmailAccountRecord] = (), emails: Sequence[EmailRecord] = ()) -> None:
    self.accounts = list(accounts)
    self.emails = list(emails)
    self.get_calls = 0

  async def get_email(self, email_id: str) -> EmailRecord | None:
    self.get_calls += 1
    return next((email for email in self.emails if email.email_id == email_id), None)

  async def list_active_accounts(self, user_id: str, *, account_id: str | None = None) -> list[EmailAccountRecord]:
    return [account for account in self.accounts if account.user_id == user_id and account.is_active and (account_id is None or account.account_id == account_id)]

  async def list_candidates(self, user_id: str, *, folders: Sequence[str], limit: int, organization_id: str | None = None, account_ids: Sequence[str] | None = None) -> list[EmailRecord]:
    matches = [
      email
      for email in self.emails
      if email.user_id == user_id and email.folder_name in folders and (organization_id is None or email.organization_id == organization_id) and (not account_ids or email.account_id in account_ids)
    ]
    matches.sort(key=lambda email: email.received_at, reverse=True)
    return matches[:limit]

  async def count_emails_since(self, user_id: str, since: datetime.datetime) -> int:
    return sum(1 for email in self.emails if email.user_id == user_id and email.received_at >= since)

  async def list_users_with_active_accounts(self) -> list[tuple[str, str | None]]:
    seen: dict[str, str | None] = {}
    for account in self.accounts:
      if account.is_active:
        seen.setdefault(account.user_id, account.organization_id)
    return list(seen.items())


class InMemoryAICacheRepo:
  def __init__(self) -> None:
    self.rows: dict[str, AICacheRecord] = {}
    self.fail = False

  async def get_entry(self, email_id: str) -> AICacheRecord | None:
    if self.fail:
      raise SQLAlchemyError("database unavailable")
    return self.rows.get(email_id)

  async def upsert_entry(self, record: AICacheRecord) -> None:
    if self.fail:
      raise SQLAlchemyError("database unavailable")
    self.rows[record.email_id] = record


class FakeModel(AIModel):
  """Model double that replays canned JSON payloads (or raises them when they are exceptions)."""

  def __init__(self, name: str = "gpt-4o-mini", payloads: Sequence[Any] = (), *, default: dict[str, Any] | None = None) -> None:
    self.name = name
    self._payloads = list(payloads)
    self._default = default or {}
    self.prompts: list[str] = []

  @property
  def calls(self) -> int:
    return len(self.prompts)

  def _next(self) -> Any:
    payload = self._payloads.pop(0) if self._payloads else self._default
    if isinstance(payload, Exception):
      raise payload
    return payload

  async def generate(self, prompt: str, *, system: str | None = None, temperature: float | None = None, max_tokens: int | None = None) -> SimpleModelResponse:
    self.prompts.append(prompt)
    return SimpleModelResponse(content=str(self._next()), usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15})

  async def generate_json(self, prompt: str, *, system: str | None = None, temperature: float | None = None, max_tokens: int | None = None) -> StructuredModelResponse:
    self.prompts.append(prompt)
    return StructuredModelResponse(content=dict(self._next()), usage={"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150})


class FakeClock:
  def __init__(self, start: datetime.datetime = NOW) -> None:
    self.now = start

  def __call__(self) -> datetime.datetime:
    return self.now

  def advance(self, **delta: float) -> None:
    self.now += datetime.timedelta(**delta)


def make_email(*, user_id: str, account_id: str, folder: str = "INBOX", subject: str = "Question", body: str = "Hello, I have a question about pricing.", received_at: datetime.datetime = NOW, sender: str = "customer@example.com", organization_id: str | None = None, **extra: Any) -> EmailRecord:
  return EmailRecord(
    email_id=str(uuid.uuid4()),
    account_id=account_id,
    user_id=user_id,
    organization_id=organization_id,
    folder_name=folder,
    subject=subject,
    body=body,
    preview=body[:100],
    sender_email=sender,
    received_at=received_at,
    word_count=len(body.split()),
    **extra,
  )


@pytest.fixture
def user() -> User:
  return User(id=uuid.uuid4(), firebase_uid="firebase-uid-1", email="owner@example.com", full_name="Ana Novak", is_active=True)


@pytest.fixture
def sessions_repo() -> InMemoryLearningSessionsRepo:
  return InMemoryLearningSessionsRepo()


@pytest.fixture
def emails_repo() -> InMemoryEmailsRepo:
  return InMemoryEmailsRepo()


@pytest.fixture
def ai_cache_repo() -> InMemoryAICacheRepo:
  return InMemoryAICacheRepo()


@pytest.fixture
def fake_clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def email_factory() -> Callable[..., EmailRecord]:
  return make_email


@pytest.fixture
def mock_db_session() -> MagicMock:
  """AsyncSession double: awaitable query methods, synchronous add()."""
  session = MagicMock()
  result = MagicMock()
  result.scalar_one_or_none.return_value = None
  result.scalars.return_value.all.return_value = []
  session.execute = AsyncMock(return_value=result)
  session.get = AsyncMock(return_value=None)
  session.commit = AsyncMock()
  session.refresh = AsyncMock()
  session.rollback = AsyncMock()
  return session


@pytest.fixture
def learning_runner() -> AsyncMock:
  return AsyncMock()


@pytest.fixture
async def async_client(mock_db_session, sessions_repo, emails_repo, learning_runner):
  """Client with the database and repositories replaced; authentication is left real."""
  from aris.api.deps import get_emails_repo, get_learning_runner, get_learning_sessions_repo
  from aris.core.database import get_db
  from aris.main import app

  async def _get_db():
    yield mock_db_session

  app.dependency_overrides[get_db] = _get_db
  app.dependency_overrides[get_learning_sessions_repo] = lambda: sessions_repo
  app.dependency_overrides[get_emails_repo] = lambda: emails_repo
  app.dependency_overrides[get_learning_runner] = lambda: learning_runner
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()


@pytest.fixture
async def authed_client(async_client, user):
  """Client whose requests are made as `user`."""
  from aris.core.security import get_current_active_user
  from aris.main import app

  app.dependency_overrides[get_current_active_user] = lambda: user
  yield async_client



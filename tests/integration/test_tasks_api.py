from __future__ import annotations

import datetime
from dataclasses import replace

import pytest

from conftest import make_email

from aris.config import get_settings
from aris.storage.emails_repo import EmailAccountRecord

SECRET = "weekly-task-secret"
USER_ID = "00000000-0000-0000-0000-00000000000a"


@pytest.fixture
def task_secret():
  from aris.main import app

  app.dependency_overrides[get_settings] = lambda: replace(get_settings(), task_secret=SECRET)
  yield SECRET
  app.dependency_overrides.pop(get_settings, None)


@pytest.mark.anyio
async def test_task_is_forbidden_when_secret_is_not_configured(async_client) -> None:
  from aris.main import app

  app.dependency_overrides[get_settings] = lambda: replace(get_settings(), task_secret=None)
  response = await async_client.post("/internal/tasks/weekly-learning")

  assert response.status_code == 403
  assert response.json()["error"] == "Task authentication is not configured."


@pytest.mark.anyio
@pytest.mark.parametrize("headers", [{}, {"x-aris-task-secret": "wrong"}, {"Authorization": "Bearer wrong"}])
async def test_task_rejects_missing_or_wrong_secret(async_client, task_secret, learning_runner, headers) -> None:
  response = await async_client.post("/internal/tasks/weekly-learning", headers=headers)

  assert response.status_code == 403
  assert response.json()["error"] == "Invalid task secret."
  learning_runner.assert_not_awaited()


@pytest.mark.anyio
@pytest.mark.parametrize("header_name", ["x-aris-task-secret", "Authorization"])
async def test_weekly_learning_starts_sessions(async_client, task_secret, emails_repo, learning_runner, header_name) -> None:
  now = datetime.datetime.now(datetime.UTC)
  emails_repo.accounts.append(EmailAccountRecord(account_id="account-a", user_id=USER_ID, organization_id=None, email_address="a@example.com"))
  emails_repo.emails.extend(make_email(user_id=USER_ID, account_id="account-a", received_at=now - datetime.timedelta(hours=index + 1)) for index in range(12))
  value = task_secret if header_name == "x-aris-task-secret" else f"Bearer {task_secret}"

  response = await async_client.post("/internal/tasks/weekly-learning", headers={header_name: value})

  assert response.status_code == 200
  assert response.json() == {"total_users": 1, "started": 1, "skipped": 0, "failed": 0}
  learning_runner.assert_awaited_once()
  assert learning_runner.await_args.args[0].tier == "starter"

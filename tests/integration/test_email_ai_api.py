from __future__ import annotations

import pytest

from conftest import FakeModel, make_email

from aris.services.ai_cache import AICache
from aris.services.background_processor import BackgroundAIProcessor

ACCOUNT = "00000000-0000-0000-0000-0000000000aa"
ANALYSIS_PAYLOAD = {"sentiment": "neutral", "classification": {"category": "sales", "intent": "order", "urgency": "normal"}}
DRAFT_PAYLOAD = {"subject": "Re: Order", "body": "Thank you for your order, it ships on Monday.", "confidence": 0.9}


@pytest.fixture
def model() -> FakeModel:
  return FakeModel(payloads=[ANALYSIS_PAYLOAD, DRAFT_PAYLOAD])


@pytest.fixture
def processor(emails_repo, model, fake_clock):
  from aris.api.deps import get_ai_processor
  from aris.main import app

  processor = BackgroundAIProcessor(emails_repo=emails_repo, cache=AICache(None, clock=fake_clock), model_for=lambda _complexity: model)
  app.dependency_overrides[get_ai_processor] = lambda: processor
  return processor


@pytest.mark.anyio
async def test_cached_results_are_404_until_processed(authed_client, processor, emails_repo, model, user) -> None:
  email = make_email(user_id=str(user.id), account_id=ACCOUNT, subject="Order", body="I would like to order 20 chairs.")
  emails_repo.emails.append(email)

  missing = await authed_client.get(f"/v1/emails/{email.email_id}/ai")
  assert missing.status_code == 404
  assert missing.json()["error"] == "No AI results cached for this email."

  processed = await authed_client.post(f"/v1/emails/{email.email_id}/ai", json={})
  assert processed.status_code == 200
  assert processed.json()["success"] is True
  assert processed.json()["draft"]["body"] == "Thank you for your order, it ships on Monday."

  cached = await authed_client.get(f"/v1/emails/{email.email_id}/ai")
  assert cached.status_code == 200
  assert cached.json()["cached"] is True
  assert cached.json()["analysis"]["classification"]["intent"] == "order"
  assert model.calls == 2


@pytest.mark.anyio
async def test_email_of_another_user_is_404(authed_client, processor, emails_repo, model) -> None:
  email = make_email(user_id="00000000-0000-0000-0000-0000000000ff", account_id=ACCOUNT)
  emails_repo.emails.append(email)

  response = await authed_client.post(f"/v1/emails/{email.email_id}/ai", json={})

  assert response.status_code == 404
  assert response.json()["error"] == "Email not found."
  assert model.calls == 0


@pytest.mark.anyio
async def test_batch_reports_unowned_ids_as_failures(authed_client, processor, emails_repo, user) -> None:
  email = make_email(user_id=str(user.id), account_id=ACCOUNT, subject="Order", body="I would like to order 20 chairs.")
  emails_repo.emails.append(email)

  response = await authed_client.post("/v1/emails/ai/batch", json={"email_ids": [email.email_id, "unknown", email.email_id]})

  assert response.status_code == 200
  body = response.json()
  assert body["processed"] == 1
  assert body["failed"] == 1
  assert [result["email_id"] for result in body["results"]] == [email.email_id, "unknown"]


@pytest.mark.anyio
async def test_batch_limit_is_enforced(authed_client, processor) -> None:
  response = await authed_client.post("/v1/emails/ai/batch", json={"email_ids": [f"id-{index}" for index in range(51)]})
  assert response.status_code == 400

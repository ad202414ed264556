from __future__ import annotations

import asyncio

import pytest

from conftest import FakeModel, InMemoryEmailsRepo, make_email

from aris.ai.providers.base import LLMProviderError
from aris.services.ai_cache import AICache
from aris.services.background_processor import BackgroundAIProcessor, ProcessingContext, determine_complexity

USER = "00000000-0000-0000-0000-000000000001"
OTHER_USER = "00000000-0000-0000-0000-000000000002"
ACCOUNT = "00000000-0000-0000-0000-0000000000aa"

ANALYSIS_PAYLOAD = {"sentiment": "Positive", "classification": {"category": "sales", "intent": "inquiry", "urgency": "high"}, "sales_intelligence": None}
DRAFT_PAYLOAD = {"subject": "", "body": "Thank you for reaching out, the offer is attached.", "confidence": 1.4}


def _processor(emails_repo, model, fake_clock, routed: list[str] | None = None) -> BackgroundAIProcessor:
  def model_for(complexity: str):
    if routed is not None:
      routed.append(complexity)
    return model

  return BackgroundAIProcessor(emails_repo=emails_repo, cache=AICache(None, clock=fake_clock), model_for=model_for)


def test_determine_complexity() -> None:
  assert determine_complexity(make_email(user_id=USER, account_id=ACCOUNT, subject="Refund request", body="I want my money back")) == "complex"
  assert determine_complexity(make_email(user_id=USER, account_id=ACCOUNT, subject="Hi", body="Where is my order?")) == "simple"
  assert determine_complexity(make_email(user_id=USER, account_id=ACCOUNT, subject="Meeting", body="Can we meet on Tuesday?")) == "standard"


@pytest.mark.anyio
async def test_email_is_analyzed_drafted_and_cached(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer for 200 units", body="Could you send an offer for 200 units?")
  model = FakeModel(payloads=[ANALYSIS_PAYLOAD, DRAFT_PAYLOAD])
  routed: list[str] = []
  processor = _processor(InMemoryEmailsRepo(emails=[email]), model, fake_clock, routed)

  result = await processor.process_email(ProcessingContext(email_id=email.email_id, user_id=USER))

  assert result.success
  assert not result.cached
  assert result.analysis["sentiment"] == "positive"
  assert result.analysis["classification"]["urgency"] == "high"
  assert result.draft["subject"] == "Re: Offer for 200 units"
  assert result.draft["confidence"] == 1.0
  assert routed == ["standard"]
  assert model.calls == 2

  again = await processor.process_email(ProcessingContext(email_id=email.email_id, user_id=USER))
  assert again.cached
  assert again.draft == result.draft
  assert model.calls == 2


@pytest.mark.anyio
async def test_cached_result_skips_lookup_and_model(fake_clock) -> None:
  emails_repo = InMemoryEmailsRepo()
  model = FakeModel()
  processor = _processor(emails_repo, model, fake_clock)
  await processor.cache.put("email-1", analysis={"sentiment": "neutral"}, draft=None)

  result = await processor.process_email(ProcessingContext(email_id="email-1", user_id=USER))

  assert result.cached
  assert result.analysis == {"sentiment": "neutral"}
  assert model.calls == 0
  assert emails_repo.get_calls == 0


@pytest.mark.anyio
async def test_force_reprocess_ignores_cache(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer", body="Please send an offer.")
  model = FakeModel(payloads=[ANALYSIS_PAYLOAD])
  processor = _processor(InMemoryEmailsRepo(emails=[email]), model, fake_clock)
  await processor.cache.put(email.email_id, analysis={"sentiment": "neutral"}, draft=None)

  result = await processor.process_email(ProcessingContext(email_id=email.email_id, user_id=USER, force_reprocess=True, skip_draft=True))

  assert not result.cached
  assert result.analysis["sentiment"] == "positive"
  assert result.draft is None
  assert model.calls == 1


@pytest.mark.anyio
async def test_automated_mail_is_skipped_without_llm_call(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Your invoice", sender="no-reply@billing.example.com")
  model = FakeModel()
  processor = _processor(InMemoryEmailsRepo(emails=[email]), model, fake_clock)

  result = await processor.process_email(ProcessingContext(email_id=email.email_id, user_id=USER))

  assert result.success
  assert result.skipped
  assert result.category == "no_reply"
  assert model.calls == 0


@pytest.mark.anyio
async def test_email_of_another_user_is_not_found(fake_clock) -> None:
  email = make_email(user_id=OTHER_USER, account_id=ACCOUNT)
  processor = _processor(InMemoryEmailsRepo(emails=[email]), FakeModel(), fake_clock)

  result = await processor.process_email(ProcessingContext(email_id=email.email_id, user_id=USER))

  assert not result.success
  assert result.error == f"Email {email.email_id} not found"


@pytest.mark.anyio
async def test_concurrent_requests_share_one_run(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer", body="Please send an offer.")
  emails_repo = InMemoryEmailsRepo(emails=[email])
  model = FakeModel(payloads=[ANALYSIS_PAYLOAD, DRAFT_PAYLOAD])
  processor = _processor(emails_repo, model, fake_clock)
  context = ProcessingContext(email_id=email.email_id, user_id=USER)

  first, second = await asyncio.gather(processor.process_email(context), processor.process_email(context))

  assert first is second
  assert emails_repo.get_calls == 1
  assert model.calls == 2
  assert processor.in_flight == 0


@pytest.mark.anyio
async def test_request_with_other_options_joins_the_running_task(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer", body="Please send an offer.")
  emails_repo = InMemoryEmailsRepo(emails=[email])
  model = FakeModel(payloads=[ANALYSIS_PAYLOAD, DRAFT_PAYLOAD])
  processor = _processor(emails_repo, model, fake_clock)
  plain = ProcessingContext(email_id=email.email_id, user_id=USER, skip_draft=True)
  forced = ProcessingContext(email_id=email.email_id, user_id=USER, force_reprocess=True)

  first, second = await asyncio.gather(processor.process_email(plain), processor.process_email(forced))

  assert first is second
  assert second.draft is None
  assert model.calls == 1


@pytest.mark.anyio
async def test_partial_failure_keeps_the_analysis(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer", body="Please send an offer.")
  model = FakeModel(payloads=[ANALYSIS_PAYLOAD, {}])
  processor = _processor(InMemoryEmailsRepo(emails=[email]), model, fake_clock)

  result = await processor.process_email(ProcessingContext(email_id=email.email_id, user_id=USER))

  assert result.success
  assert result.draft is None
  assert result.error == "draft: Draft response did not include a body."
  assert (await processor.cache.get(email.email_id)).analysis["sentiment"] == "positive"


@pytest.mark.anyio
async def test_both_failures_are_reported_and_not_cached(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer", body="Please send an offer.")
  model = FakeModel(payloads=[LLMProviderError("rate limited"), LLMProviderError("rate limited")])
  processor = _processor(InMemoryEmailsRepo(emails=[email]), model, fake_clock)

  result = await processor.process_email(ProcessingContext(email_id=email.email_id, user_id=USER))

  assert not result.success
  assert result.error == "analysis: rate limited; draft: rate limited"
  assert await processor.cache.get(email.email_id) is None


@pytest.mark.anyio
async def test_batch_keeps_input_order(fake_clock) -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer", body="Please send an offer.")
  processor = _processor(InMemoryEmailsRepo(emails=[email]), FakeModel(payloads=[ANALYSIS_PAYLOAD, DRAFT_PAYLOAD]), fake_clock)

  results = await processor.process_batch([ProcessingContext(email_id="missing", user_id=USER), ProcessingContext(email_id=email.email_id, user_id=USER)])

  assert [result.email_id for result in results] == ["missing", email.email_id]
  assert [result.success for result in results] == [False, True]

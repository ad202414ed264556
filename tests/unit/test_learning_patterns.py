from __future__ import annotations

import datetime

import pytest

from conftest import NOW, make_email

from aris.learning.models import LearnedPattern
from aris.learning.patterns import (
  batched,
  build_email_pairs,
  build_recommendations,
  calculate_pattern_quality,
  clamp_confidence,
  detect_language,
  group_pairs_by_language,
  merge_similar_patterns,
  normalize_subject,
  pattern_similarity,
)

USER = "00000000-0000-0000-0000-000000000001"
ACCOUNT = "00000000-0000-0000-0000-0000000000aa"


def _pattern(keywords: tuple[str, ...], template: str, *, confidence: float = 0.8, pattern_type: str = "question_response", category: str = "customer_inquiry", examples: tuple = ()) -> LearnedPattern:
  return LearnedPattern(pattern_type=pattern_type, context_category=category, trigger_keywords=keywords, response_template=template, confidence=confidence, example_pairs=examples)


def test_detect_language_uses_stop_words_and_diacritics() -> None:
  assert detect_language("Thank you for the message, please see the offer.") == "en"
  assert detect_language("Hvala za sporočilo, lep pozdrav") == "sl"
  assert detect_language("Ok 123") == "mixed"


def test_normalize_subject_strips_stacked_reply_prefixes() -> None:
  assert normalize_subject("RE: Fwd: Odg: Pricing question") == "pricing question"


def test_build_email_pairs_matches_first_reply_within_window() -> None:
  received = make_email(user_id=USER, account_id=ACCOUNT, subject="Delivery date", received_at=NOW)
  late_reply = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Re: Delivery date", received_at=NOW + datetime.timedelta(days=8))
  first_reply = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Re: Delivery date", received_at=NOW + datetime.timedelta(hours=3))
  second_reply = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="RE: delivery date", received_at=NOW + datetime.timedelta(days=1))
  before = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Delivery date", received_at=NOW - datetime.timedelta(hours=1))

  pairs = build_email_pairs([received], [late_reply, second_reply, before, first_reply])

  assert len(pairs) == 1
  assert pairs[0].response.email_id == first_reply.email_id


def test_build_email_pairs_drops_unanswered_email() -> None:
  received = make_email(user_id=USER, account_id=ACCOUNT, subject="Invoice")
  unrelated = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Re: Meeting", received_at=NOW + datetime.timedelta(hours=1))
  assert build_email_pairs([received], [unrelated]) == []


def test_group_pairs_by_language_and_batching() -> None:
  english = make_email(user_id=USER, account_id=ACCOUNT, subject="Offer", body="Thank you for the offer, please send the price.")
  english_reply = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Re: Offer", body="Thank you, the price is attached.", received_at=NOW + datetime.timedelta(hours=1))
  slovene = make_email(user_id=USER, account_id=ACCOUNT, subject="Ponudba", body="Prosim za ponudbo, hvala.")
  slovene_reply = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Re: Ponudba", body="Hvala za sporočilo, lep pozdrav.", received_at=NOW + datetime.timedelta(hours=2))

  groups = group_pairs_by_language(build_email_pairs([english, slovene], [english_reply, slovene_reply]))

  assert set(groups) == {"en", "sl"}
  assert [len(chunk) for chunk in batched(list(range(23)), 10)] == [10, 10, 3]


def test_clamp_confidence_bounds_and_defaults() -> None:
  assert clamp_confidence(1.7) == 1.0
  assert clamp_confidence(0) == 0.1
  assert clamp_confidence("high") == 0.5


def test_pattern_similarity_requires_same_type_and_category() -> None:
  first = _pattern(("price", "quote"), "Our price is listed in the attached quote")
  other_category = _pattern(("price", "quote"), "Our price is listed in the attached quote", category="sales_request")
  assert pattern_similarity(first, first) == 1.0
  assert pattern_similarity(first, other_category) == 0.0


def test_merge_similar_patterns_combines_near_duplicates() -> None:
  first = _pattern(("price", "quote"), "Our price is listed in the attached quote", confidence=0.9, examples=({"question": "price?"},))
  duplicate = _pattern(("Quote", "price"), "Our price is listed in the attached quote", confidence=0.5, examples=({"question": "quote?"},))
  different = _pattern(("refund",), "We will process your refund within five days", pattern_type="complaint_handling")

  merged = merge_similar_patterns([first, duplicate, different])

  assert len(merged) == 2
  combined = merged[0]
  assert combined.trigger_keywords == ("price", "quote")
  assert combined.confidence == pytest.approx(0.7)
  assert len(combined.example_pairs) == 2
  assert merged[1] is different


def test_calculate_pattern_quality_blends_confidence_diversity_completeness() -> None:
  patterns = [
    _pattern(("price",), "Prices are in the attached sheet", confidence=1.0, examples=({"q": "a"},)),
    _pattern(("hello",), "Hi", confidence=0.5, pattern_type="greeting_style"),
  ]
  # confidence 0.75 * 0.4 + diversity 2/5 * 0.3 + completeness 1/2 * 0.3
  assert calculate_pattern_quality(patterns) == 0.57
  assert calculate_pattern_quality([]) == 0.0


def test_build_recommendations_flags_missing_pairs_and_low_quality() -> None:
  notes = build_recommendations([], 0.0, pairs_found=0)
  assert any("No replied conversations" in note for note in notes)

  patterns = [_pattern(("a",), "short")]
  notes = build_recommendations(patterns, 0.3, pairs_found=4)
  assert any("quality is low" in note for note in notes)
  assert any("Few patterns" in note for note in notes)

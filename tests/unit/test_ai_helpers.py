from __future__ import annotations

import json

import pytest

from aris.ai.backoff import retry_with_backoff
from aris.ai.json_parser import parse_json_with_fallback
from aris.services.email_filter import should_process_email


def test_json_parser_recovers_from_prose_and_trailing_commas() -> None:
  raw = 'Here you go:\n```json\n{"patterns": [{"keywords": ["a", "b",],},], "note": "brace } inside"}\n```'
  assert parse_json_with_fallback(raw) == {"patterns": [{"keywords": ["a", "b"]}], "note": "brace } inside"}


def test_json_parser_raises_when_nothing_parses() -> None:
  with pytest.raises(json.JSONDecodeError):
    parse_json_with_fallback("no json here")


@pytest.mark.anyio
async def test_backoff_retries_rate_limits_only() -> None:
  calls = []

  async def flaky() -> str:
    calls.append(1)
    if len(calls) < 3:
      raise RuntimeError("429 Too Many Requests")
    return "ok"

  assert await retry_with_backoff(flaky, delays=(0, 0)) == "ok"
  assert len(calls) == 3

  async def broken() -> str:
    raise ValueError("bad request")

  with pytest.raises(ValueError):
    await retry_with_backoff(broken, delays=(0, 0))


@pytest.mark.parametrize(
  ("sender", "subject", "body", "category"),
  [
    ("ana@example.com", "Automatic reply: Out of office", "I am away.", "auto_reply"),
    ("noreply@shop.example.com", "Your order", "Thanks for your order.", "no_reply"),
    ("team@example.com", "March update", "Click here to unsubscribe.", "newsletter"),
    ("marketing@example.com", "Spring sale", "Big discounts.", "bulk"),
    ("ana@example.com", "Pricing", "Could you send the price list?", None),
  ],
)
def test_email_filter(sender, subject, body, category) -> None:
  result = should_process_email(sender=sender, subject=subject, body=body)
  assert result.category == category
  assert result.should_process is (category is None)

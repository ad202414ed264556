from __future__ import annotations

import datetime

import pytest

from conftest import NOW, InMemoryEmailsRepo, make_email

from aris.services.email_selection import (
  TIER_LIMITS,
  SmartEmailSelector,
  clamp_max_emails,
  estimate_cost,
  estimate_time_minutes,
  resolve_tier,
  score_received_email,
  score_sent_email,
  selection_quality,
  tier_recommendations,
  top_scored,
)

USER = "00000000-0000-0000-0000-000000000001"
ACCOUNT = "00000000-0000-0000-0000-0000000000aa"
OTHER_ACCOUNT = "00000000-0000-0000-0000-0000000000bb"


def test_unknown_tier_falls_back_to_starter() -> None:
  assert resolve_tier("PRO ") == "pro"
  assert resolve_tier("platinum") == "starter"
  assert resolve_tier(None) == "starter"
  assert tier_recommendations("premium_advanced") == tier_recommendations("premium_basic")


@pytest.mark.parametrize(
  ("requested", "tier", "expected"),
  [(None, "starter", 500), (10_000, "pro", 2000), (0, "unknown", 500), (100, "premium_enterprise", 100)],
)
def test_clamp_max_emails(requested, tier, expected) -> None:
  assert clamp_max_emails(requested, tier) == expected


def test_sent_email_score_rewards_recent_long_replied_threads() -> None:
  email = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Re: contract", body="word " * 120, received_at=NOW - datetime.timedelta(days=1), replied=True)
  # base 1, recent 2, long 2, replied 3, reply subject 1
  assert score_sent_email(email, NOW) == 9


def test_received_email_score_never_goes_negative() -> None:
  noise = make_email(
    user_id=USER,
    account_id=ACCOUNT,
    subject="Weekly newsletter",
    body="short",
    sender="no-reply@marketing.example.com",
    received_at=NOW - datetime.timedelta(days=200),
  )
  assert score_received_email(noise, NOW) == 0


def test_top_scored_keeps_input_order_on_ties() -> None:
  first = make_email(user_id=USER, account_id=ACCOUNT, subject="A")
  second = make_email(user_id=USER, account_id=ACCOUNT, subject="B")
  third = make_email(user_id=USER, account_id=ACCOUNT, subject="C")
  assert top_scored([first, second, third], 2, score_received_email, NOW) == [first, second]
  assert top_scored([first], 0, score_received_email, NOW) == []


def test_estimates() -> None:
  assert estimate_cost(1000) == 0.03
  assert estimate_time_minutes(0) == 0
  assert estimate_time_minutes(101) == 2


def test_selection_quality_is_zero_without_emails() -> None:
  assert selection_quality(0, 0, TIER_LIMITS["pro"]) == 0.0
  assert selection_quality(7, 3, TIER_LIMITS["starter"]) == pytest.approx(0.8)


@pytest.mark.anyio
async def test_selector_splits_budget_by_tier_ratio() -> None:
  sent = [make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject=f"Re: order {index}", received_at=NOW - datetime.timedelta(hours=index)) for index in range(10)]
  received = [make_email(user_id=USER, account_id=ACCOUNT, subject=f"Order {index}", received_at=NOW - datetime.timedelta(hours=index)) for index in range(5)]
  selector = SmartEmailSelector(InMemoryEmailsRepo(emails=sent + received))

  selection = await selector.select(USER, tier="starter", max_emails=10, now=NOW)

  assert selection.max_emails == 10
  assert len(selection.sent) == 7
  assert len(selection.received) == 3
  summary = selection.summary()
  assert summary["total_selected"] == 10
  assert summary["tier"] == "starter"
  assert "70% sent/30% received ratio" in summary["selection_strategy"]


@pytest.mark.anyio
@pytest.mark.parametrize(("budget", "expected_sent", "expected_received"), [(5, 3, 2), (9, 5, 4), (13, 7, 6)])
async def test_odd_budget_gives_the_extra_email_to_sent(budget, expected_sent, expected_received) -> None:
  sent = [make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject=f"Re: order {index}", received_at=NOW - datetime.timedelta(hours=index)) for index in range(20)]
  received = [make_email(user_id=USER, account_id=ACCOUNT, subject=f"Order {index}", received_at=NOW - datetime.timedelta(hours=index)) for index in range(20)]
  selector = SmartEmailSelector(InMemoryEmailsRepo(emails=sent + received))

  selection = await selector.select(USER, tier="pro", max_emails=budget, now=NOW)

  assert len(selection.sent) == expected_sent
  assert len(selection.received) == expected_received


@pytest.mark.anyio
async def test_selector_respects_account_filter() -> None:
  mine = make_email(user_id=USER, account_id=ACCOUNT, folder="Sent", subject="Re: A")
  other = make_email(user_id=USER, account_id=OTHER_ACCOUNT, folder="Sent", subject="Re: B")
  selector = SmartEmailSelector(InMemoryEmailsRepo(emails=[mine, other]))

  selection = await selector.select(USER, tier="pro", account_ids=[ACCOUNT], now=NOW)

  assert selection.sent == [mine]
  assert selection.received == []
  assert selection.quality_score > 0

"""Tier-aware selection of the emails a learning session analyzes.

Each subscription tier caps how many emails are analyzed and how they split
between sent mail (the user's own voice, used for reply patterns) and
received mail (the questions customers ask). Candidates are over-fetched,
scored on recency, engagement and content signals, and the best ones kept.
"""

from __future__ import annotations

import datetime
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from aris.storage.emails_repo import EmailRecord, EmailsRepository

logger = logging.getLogger(__name__)

SENT_FOLDERS: tuple[str, ...] = ("SENT", "Sent", "sent", "Sent Items", "sentitems")
INBOX_FOLDERS: tuple[str, ...] = ("INBOX", "Inbox", "inbox")
MAX_CANDIDATES = 2000
CANDIDATE_MULTIPLIER = 3
TOKENS_PER_EMAIL = 200
COST_PER_1K_TOKENS = 0.00015
EMAILS_PER_MINUTE = 100


@dataclass(frozen=True)
class TierLimits:
  max_emails: int
  sent_ratio: float
  include_conversation_threads: bool
  include_high_engagement: bool
  use_smart_sampling: bool


TIER_LIMITS: dict[str, TierLimits] = {
  "starter": TierLimits(max_emails=500, sent_ratio=0.7, include_conversation_threads=False, include_high_engagement=False, use_smart_sampling=True),
  "pro": TierLimits(max_emails=2000, sent_ratio=0.5, include_conversation_threads=True, include_high_engagement=True, use_smart_sampling=True),
  "premium_basic": TierLimits(max_emails=4000, sent_ratio=0.5, include_conversation_threads=True, include_high_engagement=True, use_smart_sampling=True),
  "premium_advanced": TierLimits(max_emails=4000, sent_ratio=0.5, include_conversation_threads=True, include_high_engagement=True, use_smart_sampling=True),
  "premium_enterprise": TierLimits(max_emails=5000, sent_ratio=0.5, include_conversation_threads=True, include_high_engagement=True, use_smart_sampling=False),
}
DEFAULT_TIER = "starter"

TIER_RECOMMENDATIONS: dict[str, list[str]] = {
  "starter": ["Learning optimized for draft generation with 70% sent emails", "Smart sampling keeps patterns high quality despite lower volume", "Estimated learning time: 5-8 minutes"],
  "pro": ["Balanced 50/50 approach: 1000 sent + 1000 received emails", "Includes conversation threads for better context understanding", "Estimated learning time: 20-25 minutes"],
  "premium_basic": ["Comprehensive learning with 4000 emails for advanced patterns", "High-engagement emails are prioritized", "Estimated learning time: 35-45 minutes"],
  "premium_enterprise": ["Full 5000 email analysis for maximum draft quality", "All conversation threads and engagement patterns included", "Estimated learning time: 45-60 minutes"],
}
TIER_RECOMMENDATIONS["premium_advanced"] = TIER_RECOMMENDATIONS["premium_basic"]


def resolve_tier(tier: str | None) -> str:
  normalized = (tier or "").strip().lower()
  return normalized if normalized in TIER_LIMITS else DEFAULT_TIER


def tier_limits(tier: str | None) -> TierLimits:
  return TIER_LIMITS[resolve_tier(tier)]


def tier_recommendations(tier: str | None) -> list[str]:
  return list(TIER_RECOMMENDATIONS[resolve_tier(tier)])


def _age_days(email: EmailRecord, now: datetime.datetime) -> float:
  return (now - email.received_at).total_seconds() / 86400


def _shared_score(email: EmailRecord, now: datetime.datetime) -> int:
  score = 0
  age = _age_days(email, now)
  if age < 30:
    score += 2
  elif age < 90:
    score += 1
  if email.word_count > 100:
    score += 2
  elif email.word_count > 50:
    score += 1
  if email.replied:
    score += 3
  return score


def score_sent_email(email: EmailRecord, now: datetime.datetime) -> int:
  score = 1 + _shared_score(email, now)
  subject = (email.subject or "").lower()
  if "re:" in subject or "fwd:" in subject:
    score += 1
  if "automatic" in subject or "no-reply" in subject:
    score -= 2
  if len(email.preview or "") < 20:
    score -= 1
  return max(score, 0)


def score_received_email(email: EmailRecord, now: datetime.datetime) -> int:
  score = 1 + _shared_score(email, now)
  if email.is_read:
    score += 1
  subject = (email.subject or "").lower()
  if "re:" in subject:
    score += 2
  if "urgent" in subject or "important" in subject:
    score += 1
  if "newsletter" in subject or "unsubscribe" in subject:
    score -= 2
  sender = (email.sender_email or "").lower()
  if "no-reply" in sender or "noreply" in sender:
    score -= 2
  if "marketing" in sender or "newsletter" in sender:
    score -= 1
  return max(score, 0)


def top_scored(emails: Sequence[EmailRecord], count: int, scorer: Any, now: datetime.datetime) -> list[EmailRecord]:
  """Keep the `count` best emails; ties keep their newest-first order."""
  if count <= 0:
    return []
  ranked = sorted(emails, key=lambda email: scorer(email, now), reverse=True)
  return ranked[:count]


def estimate_cost(email_count: int) -> float:
  return round(email_count * TOKENS_PER_EMAIL / 1000 * COST_PER_1K_TOKENS, 6)


def estimate_time_minutes(email_count: int) -> int:
  return math.ceil(email_count / EMAILS_PER_MINUTE)


def selection_quality(sent_count: int, received_count: int, limits: TierLimits) -> float:
  total = sent_count + received_count
  if total == 0:
    return 0.0
  score = 0.5
  score += (1 - abs(sent_count / total - limits.sent_ratio)) * 0.2
  if total >= 2000:
    score += 0.2
  elif total >= 1000:
    score += 0.15
  elif total >= 500:
    score += 0.1
  if limits.include_conversation_threads:
    score += 0.05
  if limits.include_high_engagement:
    score += 0.05
  if limits.use_smart_sampling:
    score += 0.1
  return round(min(max(score, 0.0), 1.0), 4)


def strategy_description(tier: str, limits: TierLimits) -> str:
  parts = [f"{limits.max_emails} total emails selected", f"{round(limits.sent_ratio * 100)}% sent/{round((1 - limits.sent_ratio) * 100)}% received ratio"]
  if limits.use_smart_sampling:
    parts.append("Smart quality sampling")
  if limits.include_conversation_threads:
    parts.append("Conversation threads included")
  if limits.include_high_engagement:
    parts.append("High-engagement emails prioritized")
  parts.append(f"Optimized for {tier} tier")
  return ", ".join(parts)


@dataclass
class EmailSelection:
  tier: str
  max_emails: int
  sent: list[EmailRecord] = field(default_factory=list)
  received: list[EmailRecord] = field(default_factory=list)
  strategy: str = ""
  estimated_cost_usd: float = 0.0
  estimated_time_minutes: int = 0
  quality_score: float = 0.0

  @property
  def total_selected(self) -> int:
    return len(self.sent) + len(self.received)

  def summary(self) -> dict[str, Any]:
    """JSON-safe description stored on the session row and returned by previews."""
    return {
      "tier": self.tier,
      "max_emails": self.max_emails,
      "total_selected": self.total_selected,
      "sent_emails": len(self.sent),
      "received_emails": len(self.received),
      "selection_strategy": self.strategy,
      "estimated_cost_usd": self.estimated_cost_usd,
      "estimated_time_minutes": self.estimated_time_minutes,
      "quality_score": self.quality_score,
    }


def clamp_max_emails(requested: int | None, tier: str | None) -> int:
  """Return the email budget: the tier maximum, or a smaller positive request."""
  limit = tier_limits(tier).max_emails
  if requested is None or requested <= 0:
    return limit
  return min(requested, limit)


class SmartEmailSelector:
  """Pick the sent/received emails worth analyzing for a user."""

  def __init__(self, emails_repo: EmailsRepository) -> None:
    self._emails_repo = emails_repo

  async def select(self, user_id: str, *, tier: str | None, organization_id: str | None = None, max_emails: int | None = None, account_ids: Sequence[str] | None = None, now: datetime.datetime | None = None) -> EmailSelection:
    resolved_tier = resolve_tier(tier)
    limits = TIER_LIMITS[resolved_tier]
    budget = clamp_max_emails(max_emails, resolved_tier)
    now = now or datetime.datetime.now(datetime.UTC)

    target_sent = math.floor(budget * limits.sent_ratio + 0.5)
    target_received = budget - target_sent
    logger.info("Selecting emails user=%s tier=%s budget=%d sent=%d received=%d", user_id, resolved_tier, budget, target_sent, target_received)

    sent = await self._pick(user_id, SENT_FOLDERS, target_sent, score_sent_email, organization_id=organization_id, account_ids=account_ids, now=now)
    received = await self._pick(user_id, INBOX_FOLDERS, target_received, score_received_email, organization_id=organization_id, account_ids=account_ids, now=now)

    total = len(sent) + len(received)
    selection = EmailSelection(
      tier=resolved_tier,
      max_emails=budget,
      sent=sent,
      received=received,
      strategy=strategy_description(resolved_tier, limits),
      estimated_cost_usd=estimate_cost(total),
      estimated_time_minutes=estimate_time_minutes(total),
      quality_score=selection_quality(len(sent), len(received), limits),
    )
    logger.info("Selected %d emails (%d sent, %d received) user=%s quality=%.2f", total, len(sent), len(received), user_id, selection.quality_score)
    return selection

  async def _pick(self, user_id: str, folders: Sequence[str], target: int, scorer: Any, *, organization_id: str | None, account_ids: Sequence[str] | None, now: datetime.datetime) -> list[EmailRecord]:
    if target <= 0:
      return []
    limit = min(target * CANDIDATE_MULTIPLIER, MAX_CANDIDATES)
    candidates = await self._emails_repo.list_candidates(user_id, folders=folders, limit=limit, organization_id=organization_id, account_ids=account_ids)
    return top_scored(candidates, target, scorer, now)

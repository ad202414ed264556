"""Pure helpers for turning email history into reply patterns.

Pairing, language grouping, pattern merging and quality scoring live here so
the worker stays focused on orchestration and these rules can be tested
without a database or model.
"""

from __future__ import annotations

import datetime
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from aris.learning.models import LearnedPattern
from aris.storage.emails_repo import EmailRecord

RESPONSE_WINDOW = datetime.timedelta(days=7)
MERGE_SIMILARITY_THRESHOLD = 0.8
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0
DEFAULT_CONFIDENCE = 0.5

_SLOVENIAN_WORDS = frozenset({"je", "in", "za", "na", "se", "da", "ki", "so", "bo", "ali", "kot", "od", "do", "pri", "pa", "če", "lahko", "sem", "si", "ga", "mu", "ji", "jo", "jim", "jih", "hvala", "prosim", "lep", "pozdrav", "sporočilo"})
_ENGLISH_WORDS = frozenset({"the", "and", "for", "are", "but", "not", "you", "all", "can", "had", "her", "was", "one", "our", "out", "day", "get", "has", "him", "his", "how", "new", "now", "see", "who", "did", "its", "let", "put", "say", "she", "too", "use", "thank", "please", "regards", "message"})
_SLOVENIAN_MARKERS = ("č", "ž", "š", "ć", "đ")
_NON_WORD_RE = re.compile(r"[^\w\s]", re.UNICODE)
_REPLY_PREFIX_RE = re.compile(r"^\s*((re|fw|fwd|aw|odg)\s*:\s*)+", re.IGNORECASE)


@dataclass(frozen=True)
class EmailPair:
  """A received email and the user's reply to it."""

  received: EmailRecord
  response: EmailRecord

  @property
  def text(self) -> str:
    return f"{self.received.subject} {self.received.body or self.received.preview} {self.response.subject} {self.response.body or self.response.preview}"


def detect_language(text: str) -> str:
  """Classify text as 'sl', 'en' or 'mixed' from stop-word counts and Slovenian diacritics."""
  lowered = text.lower()
  words = [word for word in _NON_WORD_RE.sub(" ", lowered).split() if len(word) > 1]
  slovenian = sum(1 for word in words if word in _SLOVENIAN_WORDS)
  english = sum(1 for word in words if word in _ENGLISH_WORDS)

  if any(marker in lowered for marker in _SLOVENIAN_MARKERS):
    slovenian += 3

  if slovenian > english:
    return "sl"
  if english > slovenian:
    return "en"
  return "mixed"


def normalize_subject(subject: str) -> str:
  return _REPLY_PREFIX_RE.sub("", subject or "").strip().lower()


def build_email_pairs(received: Sequence[EmailRecord], sent: Sequence[EmailRecord], *, window: datetime.timedelta = RESPONSE_WINDOW) -> list[EmailPair]:
  """Match each received email to the earliest sent email in the window whose subject contains it.

  Received emails without a reply are dropped; they carry nothing to learn from.
  """
  sent_sorted = sorted(sent, key=lambda email: email.received_at)
  pairs: list[EmailPair] = []
  for email in received:
    subject = normalize_subject(email.subject)
    deadline = email.received_at + window
    for candidate in sent_sorted:
      if candidate.received_at < email.received_at:
        continue
      if candidate.received_at > deadline:
        break
      if subject in normalize_subject(candidate.subject):
        pairs.append(EmailPair(received=email, response=candidate))
        break
  return pairs


def group_pairs_by_language(pairs: Iterable[EmailPair]) -> dict[str, list[EmailPair]]:
  groups: dict[str, list[EmailPair]] = {}
  for pair in pairs:
    groups.setdefault(detect_language(pair.text), []).append(pair)
  return groups


def batched(items: Sequence[EmailPair], size: int) -> list[list[EmailPair]]:
  return [list(items[index : index + size]) for index in range(0, len(items), size)]


def clamp_confidence(raw: object) -> float:
  try:
    value = float(raw)  # type: ignore[arg-type]
  except (TypeError, ValueError):
    return DEFAULT_CONFIDENCE
  return min(max(value, MIN_CONFIDENCE), MAX_CONFIDENCE)


def _jaccard(left: set[str], right: set[str]) -> float:
  union = left | right
  if not union:
    return 0.0
  return len(left & right) / len(union)


def pattern_similarity(first: LearnedPattern, second: LearnedPattern) -> float:
  """Similarity in [0, 1]; patterns of different type or category never match."""
  if first.pattern_type != second.pattern_type or first.context_category != second.context_category:
    return 0.0
  keyword_similarity = _jaccard({k.lower() for k in first.trigger_keywords}, {k.lower() for k in second.trigger_keywords})
  template_similarity = _jaccard(set(first.response_template.lower().split()), set(second.response_template.lower().split()))
  return keyword_similarity * 0.6 + template_similarity * 0.4


def _merge_group(group: Sequence[LearnedPattern]) -> LearnedPattern:
  head = group[0]
  keywords = sorted({keyword.lower() for pattern in group for keyword in pattern.trigger_keywords})
  examples = tuple(example for pattern in group for example in pattern.example_pairs)
  confidence = sum(pattern.confidence for pattern in group) / len(group)
  return LearnedPattern(pattern_type=head.pattern_type, context_category=head.context_category, trigger_keywords=tuple(keywords), response_template=head.response_template, confidence=confidence, example_pairs=examples, language=head.language)


def merge_similar_patterns(patterns: Sequence[LearnedPattern], *, threshold: float = MERGE_SIMILARITY_THRESHOLD) -> list[LearnedPattern]:
  """Greedily fold each pattern together with later patterns at least `threshold` similar to it."""
  merged: list[LearnedPattern] = []
  consumed: set[int] = set()
  for index, pattern in enumerate(patterns):
    if index in consumed:
      continue
    group = [pattern]
    for other_index in range(index + 1, len(patterns)):
      if other_index in consumed:
        continue
      if pattern_similarity(pattern, patterns[other_index]) >= threshold:
        group.append(patterns[other_index])
        consumed.add(other_index)
    merged.append(_merge_group(group) if len(group) > 1 else pattern)
  return merged


def calculate_pattern_quality(patterns: Sequence[LearnedPattern]) -> float:
  """Blend average confidence, type diversity and pattern completeness into [0, 1]."""
  if not patterns:
    return 0.0
  average_confidence = sum(pattern.confidence for pattern in patterns) / len(patterns)
  diversity = len({pattern.pattern_type for pattern in patterns}) / max(len(patterns), 5)
  complete = [pattern for pattern in patterns if pattern.trigger_keywords and len(pattern.response_template) > 10 and pattern.example_pairs]
  completeness = len(complete) / len(patterns)
  return round(average_confidence * 0.4 + diversity * 0.3 + completeness * 0.3, 4)


def build_recommendations(patterns: Sequence[LearnedPattern], quality: float, *, pairs_found: int) -> list[str]:
  recommendations: list[str] = []
  if pairs_found == 0:
    recommendations.append("No replied conversations were found. Reply to more customer emails and run learning again.")
  if patterns and quality < 0.6:
    recommendations.append("Pattern quality is low. Consider analyzing more emails or improving response consistency.")
  if len(patterns) < 5:
    recommendations.append("Few patterns were found. Consider analyzing a longer time period or more email accounts.")
  return recommendations

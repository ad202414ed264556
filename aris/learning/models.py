"""Learning session records and the status machine they follow."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Literal

LearningStatus = Literal["starting", "processing", "completed", "failed", "cancelled"]

ACTIVE_STATUSES: frozenset[str] = frozenset({"starting", "processing"})
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})

# Target status -> statuses a session may be in when the write happens.
# processing -> processing is allowed so progress writes can repeat.
ALLOWED_PREDECESSORS: dict[str, frozenset[str]] = {
  "starting": frozenset(),
  "processing": frozenset({"starting", "processing"}),
  "completed": frozenset({"processing"}),
  "failed": frozenset({"starting", "processing"}),
  "cancelled": frozenset({"starting", "processing"}),
}


class LearningSessionError(Exception):
  """Base error for learning session state problems."""


class InvalidStatusTransitionError(LearningSessionError):
  """Raised when a write would move a session backwards or out of a terminal state."""

  def __init__(self, session_id: str, current: str, target: str) -> None:
    super().__init__(f"Learning session {session_id} cannot move from '{current}' to '{target}'.")
    self.session_id = session_id
    self.current = current
    self.target = target


def can_transition(current: str, target: str) -> bool:
  """Return True when a session in `current` may be written with status `target`."""
  return current in ALLOWED_PREDECESSORS.get(target, frozenset())


@dataclass
class LearningSessionRecord:
  """Plain view of a learning session row shared by repositories and services."""

  session_id: str
  user_id: str
  status: LearningStatus
  max_emails: int
  started_at: datetime.datetime
  organization_id: str | None = None
  account_id: str | None = None
  progress: int = 0
  emails_selected: int = 0
  emails_processed: int = 0
  patterns_found: int = 0
  cost_usd: float = 0.0
  tokens_used: int = 0
  quality_score: float | None = None
  selection: dict[str, Any] | None = None
  recommendations: list[str] = field(default_factory=list)
  error_message: str | None = None
  completed_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class LearnedPattern:
  """A reply pattern extracted from a user's received/sent email pairs."""

  pattern_type: str
  context_category: str
  trigger_keywords: tuple[str, ...]
  response_template: str
  confidence: float
  example_pairs: tuple[dict[str, Any], ...] = ()
  language: str = "en"

"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_session_id() -> str:
  """Return a new learning session identifier."""
  return str(uuid.uuid4())


def parse_uuid(raw: str | uuid.UUID | None) -> uuid.UUID | None:
  """Parse a UUID string, returning None when the value is missing or malformed."""
  if raw is None:
    return None
  if isinstance(raw, uuid.UUID):
    return raw
  try:
    return uuid.UUID(str(raw).strip())
  except ValueError:
    return None

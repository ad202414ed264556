"""Lenient JSON parsing helpers for LLM outputs."""

from __future__ import annotations

import json
import re
from typing import Any

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"'})


def parse_json_with_fallback(raw: str) -> Any:
  """Parse model JSON, recovering from surrounding prose, trailing commas and smart quotes."""
  try:
    return json.loads(raw)
  except json.JSONDecodeError as exc:
    last_error = exc

  candidate = _extract_json_block(raw)
  if candidate is None:
    raise last_error

  for repaired in (candidate, _strip_trailing_commas(candidate), _strip_trailing_commas(candidate.translate(_SMART_QUOTES))):
    try:
      return json.loads(repaired)
    except json.JSONDecodeError as exc:
      last_error = exc

  raise last_error


def _extract_json_block(raw: str) -> str | None:
  """Locate the first balanced JSON object/array, honoring string escapes."""
  start_index: int | None = None
  depth = 0
  in_string = False
  escape = False

  for index, char in enumerate(raw):
    if start_index is None:
      if char in "{[":
        start_index = index
        depth = 1
      continue

    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
    elif char in "{[":
      depth += 1
    elif char in "}]":
      depth -= 1
      if depth == 0:
        return raw[start_index : index + 1]

  return None


def _strip_trailing_commas(raw: str) -> str:
  return _TRAILING_COMMA_RE.sub(r"\1", raw)

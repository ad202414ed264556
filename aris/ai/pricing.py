"""Per-model LLM pricing used to attribute cost to learning sessions."""

from __future__ import annotations

from collections.abc import Mapping

# model -> (input USD per 1M tokens, output USD per 1M tokens)
PricingTable = dict[str, tuple[float, float]]

DEFAULT_PRICING: PricingTable = {
  "gpt-4o": (2.50, 10.00),
  "gpt-4o-mini": (0.15, 0.60),
  "gpt-4.1": (2.00, 8.00),
  "gpt-4.1-mini": (0.40, 1.60),
}

# Flat blended rate for models missing from the table.
FALLBACK_USD_PER_1K_TOKENS = 0.005


def _normalize_model(value: str | None) -> str:
  return str(value or "").strip().lower()


def calculate_cost(model: str | None, usage: Mapping[str, int] | None, *, pricing: PricingTable | None = None) -> float:
  """Return the USD cost of one call from its token usage."""
  if not usage:
    return 0.0

  table = DEFAULT_PRICING if pricing is None else pricing
  prompt_tokens = int(usage.get("prompt_tokens") or 0)
  completion_tokens = int(usage.get("completion_tokens") or 0)
  total_tokens = int(usage.get("total_tokens") or (prompt_tokens + completion_tokens))

  rates = table.get(_normalize_model(model))
  if rates is None:
    return total_tokens / 1000 * FALLBACK_USD_PER_1K_TOKENS

  input_rate, output_rate = rates
  return (prompt_tokens * input_rate + completion_tokens * output_rate) / 1_000_000

"""Base class for AI agents."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from aris.ai.pricing import calculate_cost
from aris.ai.providers.base import AIModel
from aris.services.audit import log_llm_interaction

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")
UsageSink = Callable[[dict[str, Any]], None] | None

logger = logging.getLogger(__name__)


class BaseAgent(ABC, Generic[InputT, OutputT]):
  """Base agent holding the model client and usage accounting."""

  name: str

  def __init__(self, *, model: AIModel, usage_sink: UsageSink = None) -> None:
    self._model = model
    self._usage_sink = usage_sink

  @property
  def model_name(self) -> str:
    return getattr(self._model, "name", "unknown")

  @abstractmethod
  async def run(self, input_data: InputT, *, user_id: str | None = None) -> OutputT:
    """Run the agent on input data."""

  async def _record_usage(self, *, purpose: str, usage: dict[str, int] | None, user_id: str | None, status: str = "success") -> None:
    """Report token usage and cost to the sink and the LLM audit log."""
    tokens = int((usage or {}).get("total_tokens") or 0)
    if usage and self._usage_sink:
      self._usage_sink({"model": self.model_name, "agent": self.name, "purpose": purpose, "cost_usd": calculate_cost(self.model_name, usage), **usage})
    await log_llm_interaction(user_id=user_id, model_name=self.model_name, purpose=f"{self.name}:{purpose}", tokens_used=tokens or None, status=status)

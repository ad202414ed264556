"""Base interfaces for AI providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol


class LLMProviderError(RuntimeError):
  """Raised when a provider call fails or returns unusable output."""

  def __init__(self, message: str, *, model: str | None = None) -> None:
    super().__init__(message)
    self.model = model


class ModelResponse(Protocol):
  """Response contract for model outputs."""

  content: Any
  usage: dict[str, int] | None


@dataclass
class SimpleModelResponse:
  """Minimal model response structure."""

  content: str
  usage: dict[str, int] | None = None


@dataclass
class StructuredModelResponse:
  """Structured model response structure."""

  content: dict[str, Any]
  usage: dict[str, int] | None = None


class AIModel(ABC):
  """Abstract base class for AI models."""

  name: str

  @abstractmethod
  async def generate(self, prompt: str, *, system: str | None = None, temperature: float | None = None, max_tokens: int | None = None) -> SimpleModelResponse:
    """Generate a text response for the given prompt."""

  @abstractmethod
  async def generate_json(self, prompt: str, *, system: str | None = None, temperature: float | None = None, max_tokens: int | None = None) -> StructuredModelResponse:
    """Generate a JSON object response for the given prompt."""

  @staticmethod
  def strip_json_fences(raw: str) -> str:
    """Remove ```json fences that models wrap around JSON output."""
    text = raw.strip()
    if not text.startswith("```"):
      return text
    lines = text.splitlines()
    # Drop the opening fence (with optional language tag) and a closing fence if present.
    lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
      lines = lines[:-1]
    return "\n".join(lines).strip()


class Provider(ABC):
  """Abstract base class for AI providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""

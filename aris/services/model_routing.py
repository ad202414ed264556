from __future__ import annotations

from functools import lru_cache

from aris.ai.providers.base import AIModel
from aris.ai.providers.openai_provider import OpenAIProvider
from aris.config import Settings

COMPLEXITY_SIMPLE = "simple"
COMPLEXITY_COMPLEX = "complex"


@lru_cache(maxsize=4)
def _provider(api_key: str | None, base_url: str | None) -> OpenAIProvider:
  # One provider per credential pair so every model shares a connection pool.
  return OpenAIProvider(api_key=api_key, base_url=base_url)


def get_model(settings: Settings, model_name: str) -> AIModel:
  """Return a model client for `model_name` using the configured OpenAI credentials."""
  return _provider(settings.openai_api_key, settings.openai_base_url).get_model(model_name)


def analysis_model_name(settings: Settings, complexity: str) -> str:
  """Route complex emails to the stronger model and everything else to the cheap one."""
  if complexity == COMPLEXITY_COMPLEX:
    return settings.complex_model
  return settings.analysis_model


def learning_model(settings: Settings) -> AIModel:
  return get_model(settings, settings.learning_model)

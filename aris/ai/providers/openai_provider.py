"""OpenAI provider implementation using the openai SDK."""

from __future__ import annotations

import json
import logging
from typing import Any, Final, cast

from openai import APIError, AsyncOpenAI

from aris.ai.backoff import retry_with_backoff
from aris.ai.json_parser import parse_json_with_fallback
from aris.ai.providers.base import AIModel, LLMProviderError, Provider, SimpleModelResponse, StructuredModelResponse

logger = logging.getLogger(__name__)


def _usage_dict(response: Any) -> dict[str, int] | None:
  if not response.usage:
    return None
  return {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}


def _messages(prompt: str, system: str | None) -> list[dict[str, str]]:
  messages = []
  if system:
    messages.append({"role": "system", "content": system})
  messages.append({"role": "user", "content": prompt})
  return messages


class OpenAIModel(AIModel):
  """Chat-completions client bound to a single model name."""

  def __init__(self, name: str, client: AsyncOpenAI) -> None:
    self.name: str = name
    self._client = client

  async def _complete(self, prompt: str, *, system: str | None, temperature: float | None, max_tokens: int | None, json_mode: bool) -> tuple[str, dict[str, int] | None]:
    kwargs: dict[str, Any] = {"model": self.name, "messages": _messages(prompt, system)}
    if temperature is not None:
      kwargs["temperature"] = temperature
    if max_tokens is not None:
      kwargs["max_tokens"] = max_tokens
    if json_mode:
      kwargs["response_format"] = {"type": "json_object"}

    try:
      response = await retry_with_backoff(self._client.chat.completions.create, **kwargs)
    except APIError as exc:
      raise LLMProviderError(f"OpenAI request failed: {exc}", model=self.name) from exc

    if not response.choices:
      raise LLMProviderError("OpenAI returned no choices.", model=self.name)
    content = response.choices[0].message.content or ""
    usage = _usage_dict(response)
    logger.debug("OpenAI response model=%s chars=%d usage=%s", self.name, len(content), usage)
    return content, usage

  async def generate(self, prompt: str, *, system: str | None = None, temperature: float | None = None, max_tokens: int | None = None) -> SimpleModelResponse:
    content, usage = await self._complete(prompt, system=system, temperature=temperature, max_tokens=max_tokens, json_mode=False)
    return SimpleModelResponse(content=content, usage=usage)

  async def generate_json(self, prompt: str, *, system: str | None = None, temperature: float | None = None, max_tokens: int | None = None) -> StructuredModelResponse:
    content, usage = await self._complete(prompt, system=system, temperature=temperature, max_tokens=max_tokens, json_mode=True)
    # Parse with lenient recovery so one stray comma does not fail a whole batch.
    try:
      parsed = parse_json_with_fallback(self.strip_json_fences(content) or "{}")
    except json.JSONDecodeError as exc:
      raise LLMProviderError(f"OpenAI returned invalid JSON: {exc}", model=self.name) from exc
    if not isinstance(parsed, dict):
      raise LLMProviderError("OpenAI returned a JSON value that is not an object.", model=self.name)
    return StructuredModelResponse(content=cast(dict[str, Any], parsed), usage=usage)


class OpenAIProvider(Provider):
  """OpenAI provider."""

  _DEFAULT_MODEL: Final[str] = "gpt-4o-mini"

  def __init__(self, api_key: str | None, base_url: str | None = None) -> None:
    if not api_key:
      raise LLMProviderError("OPENAI_API_KEY environment variable is required")
    self.name: str = "openai"
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a model client sharing this provider's HTTP connection pool."""
    return OpenAIModel(model or self._DEFAULT_MODEL, self._client)

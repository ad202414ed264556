"""Provider implementations."""

from aris.ai.providers.base import AIModel, LLMProviderError, ModelResponse, Provider, SimpleModelResponse, StructuredModelResponse
from aris.ai.providers.openai_provider import OpenAIModel, OpenAIProvider

__all__ = ["AIModel", "LLMProviderError", "ModelResponse", "OpenAIModel", "OpenAIProvider", "Provider", "SimpleModelResponse", "StructuredModelResponse"]

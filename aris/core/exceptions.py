import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError

from aris.ai.providers.base import LLMProviderError
from aris.core.json import ArisJSONResponse


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  # Recursively sanitize mapping values so nested contexts remain serializable.
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Serialize exception instances explicitly to avoid leaking non-serializable objects.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(error: Any, *, request_id: str | None = None, details: Any = None) -> dict[str, Any]:
  """Build the `{"error": ...}` body shared by every failing route."""
  payload: dict[str, Any] = {"error": error}
  if details is not None:
    payload["details"] = details
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    # Remove nested input values from context payloads as well.
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def _sanitize_http_detail(detail: Any) -> Any:
  """Return an HTTPException detail payload safe for logs."""
  if isinstance(detail, dict):
    return {key: _sanitize_http_detail(value) for key, value in detail.items() if key not in {"input", "body", "payload", "content"}}

  if isinstance(detail, list):
    return [_sanitize_http_detail(item) for item in detail]

  return detail


async def global_exception_handler(request: Request, exc: Exception) -> ArisJSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return ArisJSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> ArisJSONResponse:
  """Report malformed requests as 400 without echoing the submitted payload."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return ArisJSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_payload("Invalid request", request_id=request_id, details=sanitized_errors))


async def http_exception_handler(request: Request, exc: HTTPException) -> ArisJSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  from aris.config import get_settings

  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  # Do not expose `exc.detail` of 5xx errors to callers.
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return ArisJSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  if settings.log_http_4xx:
    logger = logging.getLogger("uvicorn.error")
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, _sanitize_http_detail(exc.detail))

  return ArisJSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=getattr(exc, "headers", None))


async def llm_provider_exception_handler(request: Request, exc: LLMProviderError) -> ArisJSONResponse:
  """Return a generic failure for LLM errors; prompts and provider output stay in the logs."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("LLM provider failure request_id=%s path=%s model=%s", request_id, request.url.path, exc.model, exc_info=True)
  return ArisJSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))

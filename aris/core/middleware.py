import json
import logging
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from aris.config import get_settings

logger = logging.getLogger("aris.core.middleware")

# Email content and contact details are customer data; never write them to logs.
_SENSITIVE_KEYS = frozenset({"password", "token", "key", "authorization", "cookie", "secret", "email", "first_name", "last_name", "full_name", "name", "phone", "notes", "subject", "body", "preview", "draft", "address"})
_JSON_CONTENT_TYPES = ("application/json", "+json")


def _redact_sensitive_keys(data: Any) -> Any:
  """Redact sensitive keys from a dictionary or list recursively."""
  if isinstance(data, dict):
    return {k: ("***" if k.lower() in _SENSITIVE_KEYS else _redact_sensitive_keys(v)) for k, v in data.items()}
  if isinstance(data, list):
    return [_redact_sensitive_keys(item) for item in data]
  return data


def _header(scope: Scope, name: bytes) -> str | None:
  for key, value in scope.get("headers", []):
    if key.lower() == name:
      return value.decode("latin-1")
  return None


def _request_target(scope: Scope) -> str:
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"
  return path


def _is_json(content_type: str | None) -> bool:
  if not content_type:
    return False
  normalized = content_type.lower().split(";", 1)[0].strip()
  return normalized == _JSON_CONTENT_TYPES[0] or normalized.endswith(_JSON_CONTENT_TYPES[1])


def _format_body_for_log(body: bytes, content_type: str | None, max_bytes: int) -> str:
  """Render a body for logs: JSON is parsed and redacted, anything else is summarized."""
  if not body:
    return "<empty>"

  if not _is_json(content_type):
    return f"<{content_type or 'unknown'} body {len(body)} bytes>"

  # Truncated JSON cannot be parsed safely, so only its size is logged.
  if len(body) > max_bytes:
    return f"<json body {len(body)} bytes, over {max_bytes} byte log limit>"

  try:
    parsed = json.loads(body.decode("utf-8"))
  except (UnicodeDecodeError, json.JSONDecodeError):
    return f"<malformed json body {len(body)} bytes>"

  return json.dumps(_redact_sensitive_keys(parsed), ensure_ascii=True)


class RequestLoggingMiddleware:
  """Assign request ids and log request/response metadata, with opt-in redacted bodies."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    settings = get_settings()
    log_bodies = settings.log_http_bodies
    max_body_bytes = settings.log_http_body_bytes

    # Exception handlers read the id back from request.state.
    request_id = str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    logger.info("Incoming request request_id=%s %s %s", request_id, method, _request_target(scope))

    receive_wrapper = receive
    if log_bodies:
      chunks: list[bytes] = []
      more_body = True
      while more_body:
        message = await receive()
        if message.get("type") != "http.request":
          break
        chunks.append(message.get("body", b""))
        more_body = message.get("more_body", False)

      request_body = b"".join(chunks)
      replayed = False

      # Replay the drained body so route handlers still receive it.
      async def receive_wrapper() -> Message:
        nonlocal replayed
        if replayed:
          return await receive()
        replayed = True
        return {"type": "http.request", "body": request_body, "more_body": False}

      logger.info("Request body request_id=%s body=%s", request_id, _format_body_for_log(request_body, _header(scope, b"content-type"), max_body_bytes))

    status_code = 0
    response_content_type: str | None = None
    response_chunks: list[bytes] = []
    response_size = 0

    async def send_wrapper(message: Message) -> None:
      nonlocal status_code, response_content_type, response_size
      if message["type"] == "http.response.start":
        status_code = message.get("status", 0)
        headers = MutableHeaders(scope=message)
        if "x-request-id" not in headers:
          headers["x-request-id"] = request_id
        response_content_type = headers.get("content-type")
      elif log_bodies and message["type"] == "http.response.body":
        chunk = message.get("body", b"")
        response_size += len(chunk)
        if response_size <= max_body_bytes:
          response_chunks.append(chunk)

      await send(message)

    await self.app(scope, receive_wrapper, send_wrapper)

    process_time = (time.perf_counter() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code, process_time)
    if log_bodies:
      if response_size > max_body_bytes:
        formatted = f"<body {response_size} bytes, over {max_body_bytes} byte log limit>"
      else:
        formatted = _format_body_for_log(b"".join(response_chunks), response_content_type, max_body_bytes)
      logger.info("Response body request_id=%s status=%s body=%s", request_id, status_code, formatted)


class SecurityHeadersMiddleware:
  """Strip headers that fingerprint the server stack."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: Message) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in ("x-powered-by", "server"):
          if name in headers:
            del headers[name]
        headers.setdefault("x-content-type-options", "nosniff")

      await send(message)

    await self.app(scope, receive, send_wrapper)

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from aris.ai.providers.base import LLMProviderError
from aris.api.routes import contacts, emails, learning, notifications, tasks
from aris.config import get_settings
from aris.core.exceptions import global_exception_handler, http_exception_handler, llm_provider_exception_handler, request_validation_exception_handler
from aris.core.json import ArisJSONResponse
from aris.core.lifespan import lifespan
from aris.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

settings = get_settings()

app = FastAPI(title="ARIS Engine", default_response_class=ArisJSONResponse, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(LLMProviderError, llm_provider_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(learning.router, prefix="/v1/learning", tags=["learning"])
app.include_router(emails.router, prefix="/v1/emails", tags=["emails"])
app.include_router(contacts.router, prefix="/v1/contacts", tags=["contacts"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["notifications"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])

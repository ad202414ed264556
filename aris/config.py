"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from aris.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the ARIS service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  log_http_bodies: bool
  log_http_body_bytes: int
  pg_dsn: str | None
  pg_connect_timeout: int
  auto_create_schema: bool
  llm_audit_enabled: bool
  openai_api_key: str | None
  openai_base_url: str | None
  analysis_model: str
  complex_model: str
  learning_model: str
  ai_cache_ttl_seconds: int
  ai_memory_cache_size: int
  learning_batch_size: int
  learning_batch_delay_seconds: float
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  task_secret: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("ARIS_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("ARIS_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("ARIS_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  return value or None


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("ARIS_ENV", "development").lower()

  # Toggle SQL echo and verbose diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("ARIS_DEBUG"))

  log_max_bytes = _positive_int("ARIS_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("ARIS_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("ARIS_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("ARIS_LOG_HTTP_4XX"))
  # Allow opt-in logging of HTTP request/response bodies with a size cap.
  log_http_bodies = _parse_bool(os.getenv("ARIS_LOG_HTTP_BODIES"))
  log_http_body_bytes = _positive_int("ARIS_LOG_HTTP_BODY_BYTES", "2048")

  ai_cache_ttl_seconds = _positive_int("ARIS_AI_CACHE_TTL_SECONDS", "86400")
  ai_memory_cache_size = _positive_int("ARIS_AI_MEMORY_CACHE_SIZE", "1000")
  learning_batch_size = _positive_int("ARIS_LEARNING_BATCH_SIZE", "10")
  learning_batch_delay_seconds = float(os.getenv("ARIS_LEARNING_BATCH_DELAY_SECONDS", "1.0"))
  if learning_batch_delay_seconds < 0:
    raise ValueError("ARIS_LEARNING_BATCH_DELAY_SECONDS must not be negative.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("ARIS_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    log_http_bodies=log_http_bodies,
    log_http_body_bytes=log_http_body_bytes,
    pg_dsn=os.getenv("ARIS_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=int(os.getenv("ARIS_PG_CONNECT_TIMEOUT", "5")),
    auto_create_schema=_parse_bool(os.getenv("ARIS_AUTO_CREATE_SCHEMA")),
    llm_audit_enabled=_parse_bool(os.getenv("ARIS_LLM_AUDIT_ENABLED")),
    openai_api_key=_optional_str(os.getenv("OPENAI_API_KEY")),
    openai_base_url=_optional_str(os.getenv("OPENAI_BASE_URL")),
    analysis_model=(os.getenv("ARIS_ANALYSIS_MODEL") or "gpt-4o-mini").strip(),
    complex_model=(os.getenv("ARIS_COMPLEX_MODEL") or "gpt-4o").strip(),
    learning_model=(os.getenv("ARIS_LEARNING_MODEL") or "gpt-4o").strip(),
    ai_cache_ttl_seconds=ai_cache_ttl_seconds,
    ai_memory_cache_size=ai_memory_cache_size,
    learning_batch_size=learning_batch_size,
    learning_batch_delay_seconds=learning_batch_delay_seconds,
    firebase_project_id=os.getenv("FIREBASE_PROJECT_ID"),
    firebase_service_account_json_path=os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH"),
    task_secret=_optional_str(os.getenv("ARIS_TASK_SECRET")),
  )


def get_database_settings() -> DatabaseSettings:
  """Load only the settings needed for database access."""

  return DatabaseSettings(debug=_parse_bool(os.getenv("ARIS_DEBUG")), pg_dsn=os.getenv("ARIS_PG_DSN") or os.getenv("DATABASE_URL"), pg_connect_timeout=int(os.getenv("ARIS_PG_CONNECT_TIMEOUT", "5")))

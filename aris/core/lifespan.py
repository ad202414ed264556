import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from aris.core.database import Base, get_db_engine
from aris.core.firebase import initialize_firebase
from aris.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Configure logging, Firebase and (optionally) the schema before serving requests."""
  from aris.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("aris.core.lifespan")

  _initialize_logging(settings)
  logger.info("Startup complete - logging verified.")
  initialize_firebase()

  if settings.auto_create_schema:
    logger.info("Auto-create schema enabled; ARIS_PG_DSN=%s", _redact_dsn(settings.pg_dsn))
    try:
      await _create_schema()
    except (SQLAlchemyError, OSError):
      logger.warning("Schema creation failed; continuing with the existing schema.", exc_info=True)

  yield


async def _create_schema() -> None:
  # Importing the models registers every table on Base.metadata.
  import aris.schema.sql  # noqa: F401

  engine = get_db_engine()
  if engine is None:
    logging.getLogger("aris.core.lifespan").warning("Database engine unavailable; skipping schema creation.")
    return
  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from aris.config import get_database_settings


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def _database_url() -> str | None:
  """Build the SQLAlchemy database URL using the asyncpg driver."""
  settings = get_database_settings()
  database_url = settings.pg_dsn
  if database_url and database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
  elif database_url and database_url.startswith("postgres://"):
    database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)

  return database_url


def get_db_engine() -> AsyncEngine | None:
  global engine
  settings = get_database_settings()
  database_url = _database_url()
  if engine is None and database_url:
    engine = create_async_engine(database_url, echo=settings.debug, pool_pre_ping=True, connect_args={"timeout": settings.pg_connect_timeout})
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  global SessionLocal
  if SessionLocal is None:
    db_engine = get_db_engine()
    if db_engine:
      SessionLocal = async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)
  return SessionLocal


async def get_db() -> AsyncGenerator[AsyncSession]:
  """Dependency to get a database session."""
  session_factory = get_session_factory()
  if session_factory is None:
    raise RuntimeError("Database connection is not configured (ARIS_PG_DSN is missing).")

  async with session_factory() as session:
    try:
      yield session
    finally:
      await session.close()

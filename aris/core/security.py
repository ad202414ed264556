from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from aris.core.database import get_db
from aris.core.firebase import verify_id_token
from aris.schema.sql import User
from aris.services.users import get_user_by_firebase_uid

# auto_error is off so a missing header yields the same 401 as a bad token.
security_scheme = HTTPBearer(auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def _unauthorized(detail: str) -> HTTPException:
  return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers=_UNAUTHORIZED_HEADERS)


async def get_current_identity(token: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)], db: AsyncSession = Depends(get_db)) -> tuple[User, dict[str, Any]]:  # noqa: B008
  """Verify the Firebase ID token and load the matching user row."""
  if token is None or not token.credentials:
    raise _unauthorized("Not authenticated")

  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise _unauthorized("Invalid authentication credentials")

  firebase_uid = decoded_claims.get("uid")
  if not firebase_uid:
    raise _unauthorized("Invalid token claims")

  user = await get_user_by_firebase_uid(db, firebase_uid)
  if not user:
    raise _unauthorized("User not found")
  return user, decoded_claims


async def get_current_user(current_identity: tuple[User, dict[str, Any]] = Depends(get_current_identity)) -> User:  # noqa: B008
  return current_identity[0]


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:  # noqa: B008
  """Block deactivated accounts from protected routes."""
  if not current_user.is_active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
  return current_user

"""Organization resolution and membership checks for organization-scoped routes."""

from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aris.schema.sql import Organization, OrganizationMember, User
from aris.utils.ids import parse_uuid


def parse_organization_id(raw: str | None) -> uuid.UUID:
  """Return the organization UUID or raise 400 when it is missing or malformed."""
  parsed = parse_uuid(raw)
  if parsed is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A valid organization_id is required.")
  return parsed


async def is_member(session: AsyncSession, *, organization_id: uuid.UUID, user_id: uuid.UUID) -> bool:
  stmt = select(OrganizationMember.user_id).where(OrganizationMember.organization_id == organization_id, OrganizationMember.user_id == user_id)
  result = await session.execute(stmt)
  return result.scalar_one_or_none() is not None


async def resolve_organization(session: AsyncSession, user: User, raw_organization_id: str | None) -> Organization:
  """Resolve an organization the user may act in.

  Errors follow one order so callers never write before validation finishes:
  400 for a missing or malformed id, 404 for an unknown organization, 403 when
  the user is not a member.
  """
  organization_id = parse_organization_id(raw_organization_id)
  organization = await session.get(Organization, organization_id)
  if organization is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found.")
  if not await is_member(session, organization_id=organization.id, user_id=user.id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a member of this organization.")
  return organization


async def resolve_optional_organization(session: AsyncSession, user: User, raw_organization_id: str | None) -> Organization | None:
  """Like resolve_organization, but an absent id falls back to the user's current organization (or none)."""
  if raw_organization_id is None or not raw_organization_id.strip():
    if user.current_organization_id is None:
      return None
    return await session.get(Organization, user.current_organization_id)
  return await resolve_organization(session, user, raw_organization_id)


def organization_tier(organization: Organization | None) -> str:
  if organization is None:
    return "starter"
  tier = organization.subscription_tier
  return tier.value if hasattr(tier, "value") else str(tier)


async def lookup_organization_tier(session: AsyncSession, raw_organization_id: str | None) -> str:
  """Return the subscription tier for an organization id, defaulting to starter.

  A failed lookup rolls the session back before re-raising so the session stays
  usable for the next caller.
  """
  organization_id = parse_uuid(raw_organization_id)
  if organization_id is None:
    return organization_tier(None)
  try:
    organization = await session.get(Organization, organization_id)
  except SQLAlchemyError:
    await session.rollback()
    raise
  return organization_tier(organization)

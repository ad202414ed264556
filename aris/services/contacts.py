"""CRUD helpers for organization-scoped CRM contacts.

Every read and write is scoped to organizations the caller belongs to; a
contact in another organization is reported as missing rather than forbidden.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from aris.schema.contacts import Contact
from aris.schema.sql import OrganizationMember, User
from aris.services.organizations import resolve_organization
from aris.utils.ids import parse_uuid

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("first_name", "last_name", "email", "company", "phone", "notes")


def contact_payload(contact: Contact) -> dict[str, Any]:
  return {
    "id": str(contact.id),
    "organization_id": str(contact.organization_id),
    "created_by": str(contact.created_by) if contact.created_by else None,
    "first_name": contact.first_name,
    "last_name": contact.last_name,
    "email": contact.email,
    "company": contact.company,
    "phone": contact.phone,
    "notes": contact.notes,
    "created_at": contact.created_at,
    "updated_at": contact.updated_at,
  }


async def create_contact(session: AsyncSession, user: User, *, organization_id: str | None, fields: dict[str, Any]) -> Contact:
  """Create a contact after the organization has been fully validated."""
  organization = await resolve_organization(session, user, organization_id)
  contact = Contact(organization_id=organization.id, created_by=user.id, **{key: fields.get(key) for key in UPDATABLE_FIELDS})
  session.add(contact)
  await session.commit()
  await session.refresh(contact)
  logger.info("Contact %s created in organization %s by user %s", contact.id, organization.id, user.id)
  return contact


async def list_contacts(session: AsyncSession, user: User, *, organization_id: str | None, limit: int = 50, offset: int = 0) -> list[Contact]:
  organization = await resolve_organization(session, user, organization_id)
  stmt = select(Contact).where(Contact.organization_id == organization.id).order_by(Contact.created_at.desc()).limit(limit).offset(offset)
  result = await session.execute(stmt)
  return list(result.scalars().all())


async def get_contact(session: AsyncSession, user: User, contact_id: str) -> Contact:
  """Load a contact the user can see, or raise 404."""
  parsed = parse_uuid(contact_id)
  if parsed is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found.")
  stmt = select(Contact).join(OrganizationMember, OrganizationMember.organization_id == Contact.organization_id).where(Contact.id == parsed, OrganizationMember.user_id == user.id)
  result = await session.execute(stmt)
  contact = result.scalar_one_or_none()
  if contact is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found.")
  return contact


async def update_contact(session: AsyncSession, user: User, contact_id: str, *, changes: dict[str, Any]) -> Contact:
  contact = await get_contact(session, user, contact_id)
  for key, value in changes.items():
    if key in UPDATABLE_FIELDS:
      setattr(contact, key, value)
  await session.commit()
  await session.refresh(contact)
  return contact


async def delete_contact(session: AsyncSession, user: User, contact_id: str) -> None:
  contact = await get_contact(session, user, contact_id)
  contact_uuid: uuid.UUID = contact.id
  await session.execute(delete(Contact).where(Contact.id == contact_uuid))
  await session.commit()
  logger.info("Contact %s deleted by user %s", contact_uuid, user.id)

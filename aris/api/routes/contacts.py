from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from aris.api.deps import get_db_session
from aris.api.models import ContactCreateRequest, ContactListResponse, ContactResponse, ContactUpdateRequest
from aris.core.security import get_current_active_user
from aris.schema.sql import User
from aris.services import contacts as contacts_service

router = APIRouter()


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
  payload: ContactCreateRequest,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> ContactResponse:
  """Create a contact in an organization the caller belongs to."""
  fields = payload.model_dump(exclude={"organization_id"})
  contact = await contacts_service.create_contact(db, current_user, organization_id=payload.organization_id, fields=fields)
  return ContactResponse(**contacts_service.contact_payload(contact))


@router.get("", response_model=ContactListResponse)
async def list_contacts(
  organization_id: str = Query(...),  # noqa: B008
  limit: int = Query(50, ge=1, le=200),  # noqa: B008
  offset: int = Query(0, ge=0),  # noqa: B008
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> ContactListResponse:
  contacts = await contacts_service.list_contacts(db, current_user, organization_id=organization_id, limit=limit, offset=offset)
  return ContactListResponse(contacts=[ContactResponse(**contacts_service.contact_payload(contact)) for contact in contacts])


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
  contact_id: str,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> ContactResponse:
  contact = await contacts_service.get_contact(db, current_user, contact_id)
  return ContactResponse(**contacts_service.contact_payload(contact))


@router.patch("/{contact_id}", response_model=ContactResponse)
async def update_contact(
  contact_id: str,
  payload: ContactUpdateRequest,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> ContactResponse:
  contact = await contacts_service.update_contact(db, current_user, contact_id, changes=payload.model_dump(exclude_unset=True))
  return ContactResponse(**contacts_service.contact_payload(contact))


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
  contact_id: str,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> Response:
  await contacts_service.delete_contact(db, current_user, contact_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)

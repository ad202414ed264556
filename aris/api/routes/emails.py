from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from aris.api.deps import get_ai_processor, get_emails_repo
from aris.api.models import EmailAIBatchRequest, EmailAIBatchResponse, EmailAIProcessRequest, EmailAIResultResponse
from aris.core.security import get_current_active_user
from aris.schema.sql import User
from aris.services.background_processor import BackgroundAIProcessor, ProcessingContext
from aris.storage.emails_repo import EmailRecord, EmailsRepository

router = APIRouter()
logger = logging.getLogger(__name__)


async def _owned_email(emails_repo: EmailsRepository, user: User, email_id: str) -> EmailRecord:
  email = await emails_repo.get_email(email_id)
  if email is None or email.user_id != str(user.id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email not found.")
  return email


@router.get("/{email_id}/ai", response_model=EmailAIResultResponse)
async def get_cached_email_ai(
  email_id: str,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  emails_repo: EmailsRepository = Depends(get_emails_repo),  # noqa: B008
  processor: BackgroundAIProcessor = Depends(get_ai_processor),  # noqa: B008
) -> EmailAIResultResponse:
  """Return cached analysis and draft for an email without calling the LLM."""
  await _owned_email(emails_repo, current_user, email_id)
  cached = await processor.cache.get(email_id)
  if cached is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No AI results cached for this email.")
  return EmailAIResultResponse(success=True, email_id=email_id, analysis=cached.analysis, draft=cached.draft, cached=True)


@router.post("/{email_id}/ai", response_model=EmailAIResultResponse)
async def process_email_ai(
  email_id: str,
  payload: EmailAIProcessRequest,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  emails_repo: EmailsRepository = Depends(get_emails_repo),  # noqa: B008
  processor: BackgroundAIProcessor = Depends(get_ai_processor),  # noqa: B008
) -> EmailAIResultResponse:
  """Analyze an email and draft a reply, serving cached results when they are fresh."""
  email = await _owned_email(emails_repo, current_user, email_id)
  context = ProcessingContext(email_id=email_id, user_id=str(current_user.id), organization_id=email.organization_id, priority=payload.priority, skip_draft=payload.skip_draft, force_reprocess=payload.force_reprocess)
  result = await processor.process_email(context)
  return EmailAIResultResponse(**result.to_dict())


@router.post("/ai/batch", response_model=EmailAIBatchResponse)
async def process_email_ai_batch(
  payload: EmailAIBatchRequest,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  emails_repo: EmailsRepository = Depends(get_emails_repo),  # noqa: B008
  processor: BackgroundAIProcessor = Depends(get_ai_processor),  # noqa: B008
) -> EmailAIBatchResponse:
  """Process up to 50 of the caller's emails; ids the caller does not own come back as failures."""
  user_id = str(current_user.id)
  contexts: list[ProcessingContext] = []
  rejected: list[EmailAIResultResponse] = []
  for email_id in dict.fromkeys(payload.email_ids):
    email = await emails_repo.get_email(email_id)
    if email is None or email.user_id != user_id:
      rejected.append(EmailAIResultResponse(success=False, email_id=email_id, error="Email not found."))
      continue
    contexts.append(ProcessingContext(email_id=email_id, user_id=user_id, organization_id=email.organization_id, skip_draft=payload.skip_draft, force_reprocess=payload.force_reprocess))

  results = [EmailAIResultResponse(**result.to_dict()) for result in await processor.process_batch(contexts)] + rejected
  failed = sum(1 for result in results if not result.success)
  logger.info("AI batch for user %s: %d emails, %d failed", user_id, len(results), failed)
  return EmailAIBatchResponse(results=results, processed=len(results) - failed, failed=failed)

from __future__ import annotations

import logging
import time
from typing import Any

from aris.ai.agents.base import BaseAgent
from aris.storage.emails_repo import EmailRecord

logger = logging.getLogger(__name__)

_SENTIMENTS = {"positive", "neutral", "negative", "mixed"}
_MAX_BODY_CHARS = 4000

_SYSTEM_PROMPT = "You are a CRM sales assistant that analyzes customer emails. Return valid JSON only."


def _email_block(email: EmailRecord) -> str:
  body = (email.body or email.preview)[:_MAX_BODY_CHARS]
  return f"From: {email.sender_email}\nTo: {email.recipient_email}\nSubject: {email.subject}\nDate: {email.received_at.isoformat()}\n\n{body}"


class EmailAnalystAgent(BaseAgent[EmailRecord, dict[str, Any]]):
  """Classify an email and extract sales signals."""

  name = "EmailAnalyst"

  async def run(self, input_data: EmailRecord, *, user_id: str | None = None) -> dict[str, Any]:
    started = time.perf_counter()
    response = await self._model.generate_json(self._build_prompt(input_data), system=_SYSTEM_PROMPT, temperature=0.2, max_tokens=800)
    await self._record_usage(purpose="analysis", usage=response.usage, user_id=user_id)

    payload = response.content
    sentiment = str(payload.get("sentiment") or "neutral").lower()
    classification = payload.get("classification") if isinstance(payload.get("classification"), dict) else {}
    sales = payload.get("sales_intelligence") if isinstance(payload.get("sales_intelligence"), dict) else None
    return {
      "sentiment": sentiment if sentiment in _SENTIMENTS else "neutral",
      "classification": {"category": classification.get("category") or "general", "intent": classification.get("intent") or "inquiry", "urgency": classification.get("urgency") or "normal"},
      "sales_intelligence": sales,
      "model": self.model_name,
      "processing_time_ms": int((time.perf_counter() - started) * 1000),
    }

  def _build_prompt(self, email: EmailRecord) -> str:
    return f"""
Analyze the email below.

{_email_block(email)}

Return a JSON object with:
- "sentiment": one of "positive", "neutral", "negative", "mixed"
- "classification": {{"category": short label such as "sales", "support", "billing", "general", "intent": "inquiry" | "order" | "complaint" | "follow_up" | "other", "urgency": "low" | "normal" | "high"}}
- "sales_intelligence": {{"buying_signals": [strings], "products_mentioned": [strings], "opportunity_score": number 0-1, "next_best_action": string}} or null when the email has no sales relevance
"""


class ReplyDrafterAgent(BaseAgent[EmailRecord, dict[str, Any]]):
  """Draft a reply to an incoming email."""

  name = "ReplyDrafter"

  async def run(self, input_data: EmailRecord, *, user_id: str | None = None) -> dict[str, Any]:
    started = time.perf_counter()
    response = await self._model.generate_json(self._build_prompt(input_data), system=_SYSTEM_PROMPT, temperature=0.5, max_tokens=1200)
    await self._record_usage(purpose="draft", usage=response.usage, user_id=user_id)

    payload = response.content
    body = str(payload.get("body") or "").strip()
    if not body:
      raise ValueError("Draft response did not include a body.")
    subject = str(payload.get("subject") or "").strip() or _reply_subject(input_data.subject)
    return {"subject": subject, "body": body, "confidence": _clamp_confidence(payload.get("confidence")), "model": self.model_name, "processing_time_ms": int((time.perf_counter() - started) * 1000)}

  def _build_prompt(self, email: EmailRecord) -> str:
    return f"""
Write a professional, detailed reply to the email below in the same language it was written in.

{_email_block(email)}

Return a JSON object with "subject" (reply subject line), "body" (plain text reply without a signature block) and "confidence" (number 0-1 for how well the reply answers the email).
"""


def _reply_subject(subject: str) -> str:
  if subject.lower().startswith("re:"):
    return subject
  return f"Re: {subject}".strip()


def _clamp_confidence(raw: Any) -> float:
  try:
    value = float(raw)
  except (TypeError, ValueError):
    return 0.5
  return min(max(value, 0.0), 1.0)

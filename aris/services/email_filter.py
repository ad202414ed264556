"""Rule-based pre-filter that keeps bulk and automated mail away from the LLM."""

from __future__ import annotations

from dataclasses import dataclass

NO_REPLY_MARKERS = ("noreply", "no-reply", "donotreply", "do-not-reply", "mailer-daemon", "postmaster")
AUTO_REPLY_SUBJECTS = ("out of office", "automatic reply", "auto-reply", "autoreply", "odsoten", "samodejni odgovor", "delivery status notification", "undeliverable")
NEWSLETTER_MARKERS = ("unsubscribe", "newsletter", "view this email in your browser", "odjava od novic", "manage your preferences")
BULK_SENDER_MARKERS = ("marketing@", "news@", "newsletter@", "promo@", "notifications@", "mailchimp", "sendgrid", "mailgun")


@dataclass(frozen=True)
class FilterResult:
  should_process: bool
  reason: str | None = None
  category: str | None = None


_PROCESS = FilterResult(should_process=True)


def should_process_email(*, sender: str, subject: str, body: str) -> FilterResult:
  """Decide whether an email is worth analyzing and drafting a reply for."""
  sender_lower = (sender or "").lower()
  subject_lower = (subject or "").lower()
  body_lower = (body or "").lower()

  if any(marker in subject_lower for marker in AUTO_REPLY_SUBJECTS):
    return FilterResult(should_process=False, reason="Automatic reply", category="auto_reply")
  if any(marker in sender_lower for marker in NO_REPLY_MARKERS):
    return FilterResult(should_process=False, reason="Sender does not accept replies", category="no_reply")
  if any(marker in body_lower for marker in NEWSLETTER_MARKERS) or "newsletter" in subject_lower:
    return FilterResult(should_process=False, reason="Newsletter or mailing list", category="newsletter")
  if any(marker in sender_lower for marker in BULK_SENDER_MARKERS):
    return FilterResult(should_process=False, reason="Bulk or marketing sender", category="bulk")
  return _PROCESS

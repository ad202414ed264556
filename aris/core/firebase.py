import logging
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials, exceptions

from aris.config import get_settings

logger = logging.getLogger(__name__)


def initialize_firebase() -> None:
  """Initializes the Firebase Admin SDK."""
  if firebase_admin._apps:
    return

  settings = get_settings()
  if not settings.firebase_project_id:
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return

  try:
    if settings.firebase_service_account_json_path:
      cred = credentials.Certificate(settings.firebase_service_account_json_path)
      firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
    else:
      # Application Default Credentials
      firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id})
    logger.info("Firebase Admin SDK initialized successfully.")
  except (ValueError, OSError, exceptions.FirebaseError):
    logger.error("Failed to initialize Firebase Admin SDK.", exc_info=True)


def verify_id_token(id_token: str) -> dict[str, Any] | None:
  """Verify a Firebase ID token and return its claims, or None when it is not valid."""
  if not firebase_admin._apps:
    initialize_firebase()

  try:
    return auth.verify_id_token(id_token)
  except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, auth.CertificateFetchError, auth.UserDisabledError) as exc:
    logger.warning("Token verification failed: %s", type(exc).__name__)
    return None

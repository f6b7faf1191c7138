"""Google OAuth2 credentials built from a per-session refresh token."""

import logging

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from src.config import settings

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def credentials_from_refresh_token(refresh_token: str) -> Credentials:
    """Return refreshed credentials for *refresh_token*.

    Blocking (performs the token refresh over HTTP); call it from a worker
    thread.
    """
    creds = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        scopes=settings.google_scope.split(),
    )
    creds.refresh(Request())
    logger.debug("Refreshed Google access token")
    return creds


def calendar_service(refresh_token: str):  # noqa: ANN201
    """Build a Calendar API service."""
    creds = credentials_from_refresh_token(refresh_token)
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def gmail_service(refresh_token: str):  # noqa: ANN201
    """Build a Gmail API service."""
    creds = credentials_from_refresh_token(refresh_token)
    return build("gmail", "v1", credentials=creds, cache_discovery=False)

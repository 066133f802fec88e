"""Authorised HTTP sessions for the Google APIs the kiosk talks to."""

from __future__ import annotations

from typing import Any, Sequence

import google.auth
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

DRIVE_SCOPES = ("https://www.googleapis.com/auth/drive",)
SHEETS_SCOPES = ("https://www.googleapis.com/auth/spreadsheets",)
CLOUD_SCOPES = ("https://www.googleapis.com/auth/cloud-platform",)


class MissingCredentials(RuntimeError):
    pass


def service_account_session(info: dict[str, Any] | None, scopes: Sequence[str]) -> AuthorizedSession:
    """Session signed with a service-account key held as a secret."""
    if not info:
        raise MissingCredentials("service account credentials are not configured")
    creds = service_account.Credentials.from_service_account_info(info, scopes=list(scopes))
    return AuthorizedSession(creds)


def default_session(scopes: Sequence[str] = CLOUD_SCOPES) -> AuthorizedSession:
    """Session using the runtime's application default credentials."""
    creds, _project = google.auth.default(scopes=list(scopes))
    return AuthorizedSession(creds)

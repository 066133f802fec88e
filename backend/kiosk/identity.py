from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import google.auth.exceptions
import requests
from fastapi import Request
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from .config import Settings
from .google_apis import default_session

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/projects/{project}/accounts:lookup"


class InvalidToken(Exception):
    pass


class IdentityError(Exception):
    """The identity provider could not be reached or answered unexpectedly."""


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Account:
    uid: str
    email: str


class IdentityProvider:
    """Firebase Authentication, reached through google-auth."""

    def __init__(self, project_id: str, session=None):
        self.project_id = project_id
        self._session = session
        self._request = google_requests.Request()

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityProvider":
        return cls(settings.firebase_project_id)

    @property
    def session(self):
        if self._session is None:
            self._session = default_session()
        return self._session

    def verify_token(self, token: str) -> Identity:
        try:
            claims = id_token.verify_firebase_token(token, self._request, audience=self.project_id)
        except (ValueError, google.auth.exceptions.GoogleAuthError) as exc:
            raise InvalidToken(str(exc)) from exc
        if not claims:
            raise InvalidToken("empty token claims")
        uid = claims.get("user_id") or claims.get("sub")
        if not uid:
            raise InvalidToken("token has no subject")
        return Identity(uid=uid, email=claims.get("email"), claims=dict(claims))

    def get_user_by_email(self, email: str) -> Account | None:
        url = IDENTITY_TOOLKIT_URL.format(project=self.project_id)
        try:
            response = self.session.post(url, json={"email": [email]})
        except (requests.RequestException, google.auth.exceptions.GoogleAuthError) as exc:
            raise IdentityError(str(exc)) from exc
        if response.status_code != 200:
            raise IdentityError(f"accounts:lookup returned {response.status_code}: {response.text}")
        users = response.json().get("users") or []
        if not users:
            return None
        return Account(uid=users[0]["localId"], email=users[0].get("email", email))


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider

import os
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ.setdefault("INCIDENT_IQ_API_TOKEN", "iiq-test-token")
os.environ.setdefault("GEMINI_API_KEY", "gemini-test-key")
os.environ.setdefault("SHEET_SYNC_API_KEY", "sync-test-key")
os.environ.setdefault("GOOGLE_DRIVE_CREDENTIALS", '{"type": "service_account"}')
import json
import uuid

import pytest
from fastapi.testclient import TestClient

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2]))

from kiosk.main import app
from kiosk.database import Base, SessionLocal, engine, get_db
from kiosk.identity import Account, Identity, InvalidToken
from kiosk.upstream import UpstreamClient
from kiosk import models, notify, sheets

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


def override_get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.text = "" if body is None else json.dumps(body)
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    """Stands in for requests.Session / AuthorizedSession and records every call."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def _next(self):
        if not self.responses:
            raise AssertionError("unexpected upstream call")
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        return self._next()

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)


class FakeIdentityProvider:
    """Tokens are ``<uid>:<email>``; accounts are registered by email."""

    def __init__(self):
        self.accounts = {}

    def verify_token(self, token):
        uid, sep, email = token.partition(":")
        if not sep:
            raise InvalidToken("malformed")
        return Identity(uid=uid, email=email)

    def get_user_by_email(self, email):
        uid = self.accounts.get(email)
        return Account(uid=uid, email=email) if uid else None


@pytest.fixture(autouse=True)
def clean_state():
    db = SessionLocal()
    for table in reversed(Base.metadata.sorted_tables):
        db.execute(table.delete())
    db.commit()
    db.close()
    notify.EMAIL_OUTBOX.clear()
    sheets.SHEET_APPENDS.clear()
    yield


@pytest.fixture(autouse=True)
def identity(monkeypatch):
    provider = FakeIdentityProvider()
    monkeypatch.setattr(app.state, "identity_provider", provider)
    return provider


@pytest.fixture
def upstream(monkeypatch):
    """Point both upstream clients at recording sessions; returns them by name."""
    settings = app.state.settings
    iiq = FakeSession()
    gem = FakeSession()
    monkeypatch.setattr(
        app.state,
        "incident_iq",
        UpstreamClient(base_url=settings.incident_iq_base_url, headers={"siteid": settings.incident_iq_site_id}, session=iiq),
    )
    monkeypatch.setattr(
        app.state,
        "gemini",
        UpstreamClient(
            base_url="https://generativelanguage.googleapis.com/v1beta/models/",
            params={"key": settings.gemini_api_key},
            session=gem,
        ),
    )
    return {"incident_iq": iiq, "gemini": gem}


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def make_user(role=models.Role.technician, email=None):
    uid = f"uid-{uuid.uuid4().hex[:8]}"
    email = email or f"{uid}@normanps.org"
    db = SessionLocal()
    db.add(models.User(id=uid, email=email, name="Test User", role=role))
    db.commit()
    db.close()
    return uid, email


def auth_headers(role=models.Role.technician, email=None):
    uid, email = make_user(role, email)
    return {"Authorization": f"Bearer {uid}:{email}"}

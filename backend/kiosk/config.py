"""Process-wide settings for the kiosk API.

Settings are read from the environment exactly once, when the application is
created, and handed to route handlers through :func:`get_settings`.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from fastapi import Request

DEFAULT_CORS_ORIGINS = "https://supportkiosk-b43dd.web.app,http://localhost:3000,http://localhost:3001"


def _split_csv(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


def _json_secret(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    return json.loads(raw)


@dataclass(frozen=True)
class Settings:
    incident_iq_base_url: str = "https://normanps.incidentiq.com"
    incident_iq_api_token: str | None = None
    incident_iq_site_id: str = "1e23170a-2e1b-49cd-b6a6-2d9f9e12a892"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    drive_credentials: dict[str, Any] | None = None
    drive_folder_id: str = "1eo75hAgvRoVpnarn0WMkxWaJup4FB-_U"
    sheets_credentials: dict[str, Any] | None = None
    waiver_spreadsheet_id: str = "1SwpvoXuyZBzbL3tM_O2RGeHl2RkD9i3WFOzqiUhvqT4"
    waiver_sheet_name: str = "Form Responses 1"
    gmail_email: str | None = None
    gmail_app_password: str | None = None
    mail_from: str = '"Support Kiosk" <helpdesk@normanps.org>'
    fallback_email: str = "helpdesk@normanps.org"
    bcc_email: str = "tutley@normanps.org"
    sheet_sync_api_key: str | None = None
    firebase_project_id: str = "supportkiosk-b43dd"
    staff_email_domain: str | None = "normanps.org"
    cors_origins: list[str] = field(default_factory=lambda: _split_csv(DEFAULT_CORS_ORIGINS))
    testing: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            incident_iq_base_url=env.get("INCIDENT_IQ_BASE_URL", defaults.incident_iq_base_url).rstrip("/"),
            incident_iq_api_token=env.get("INCIDENT_IQ_API_TOKEN") or None,
            incident_iq_site_id=env.get("INCIDENT_IQ_SITE_ID", defaults.incident_iq_site_id),
            gemini_api_key=env.get("GEMINI_API_KEY") or None,
            gemini_model=env.get("GEMINI_MODEL", defaults.gemini_model),
            drive_credentials=_json_secret(env.get("GOOGLE_DRIVE_CREDENTIALS")),
            drive_folder_id=env.get("DRIVE_FOLDER_ID", defaults.drive_folder_id),
            sheets_credentials=_json_secret(env.get("GOOGLE_SHEETS_CREDENTIALS")),
            waiver_spreadsheet_id=env.get("WAIVER_SPREADSHEET_ID", defaults.waiver_spreadsheet_id),
            waiver_sheet_name=env.get("WAIVER_SHEET_NAME", defaults.waiver_sheet_name),
            gmail_email=env.get("GMAIL_EMAIL") or None,
            gmail_app_password=env.get("GMAIL_APP_PASSWORD") or None,
            mail_from=env.get("MAIL_FROM", defaults.mail_from),
            fallback_email=env.get("HELPDESK_FALLBACK_EMAIL", defaults.fallback_email),
            bcc_email=env.get("HELPDESK_BCC_EMAIL", defaults.bcc_email),
            sheet_sync_api_key=env.get("SHEET_SYNC_API_KEY") or None,
            firebase_project_id=env.get("FIREBASE_PROJECT_ID", defaults.firebase_project_id),
            staff_email_domain=env.get("STAFF_EMAIL_DOMAIN", defaults.staff_email_domain) or None,
            cors_origins=_split_csv(env.get("CORS_ALLOW_ORIGINS", DEFAULT_CORS_ORIGINS)),
            testing=env.get("TESTING") == "1",
        )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

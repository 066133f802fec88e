from __future__ import annotations

from typing import Any

import google.auth.exceptions
import requests

from .config import Settings
from .google_apis import SHEETS_SCOPES, MissingCredentials, service_account_session
from . import models

SHEETS_APPEND_URL = "https://sheets.googleapis.com/v4/spreadsheets/{spreadsheet_id}/values/{range}:append"

SHEET_APPENDS: list[dict[str, Any]] = []


class SheetsError(Exception):
    pass


def split_name(full_name: str | None) -> tuple[str, str]:
    """Return ``(last, first)``: the last word is the surname, the rest the given name.

    A single-word name has no surname: ``"Cher"`` -> ``("", "Cher")``.
    """
    parts = (full_name or "").split()
    if len(parts) < 2:
        return "", " ".join(parts)
    return parts[-1], " ".join(parts[:-1])


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def waiver_row(waiver: models.Waiver) -> list[Any]:
    last, first = split_name(waiver.user_name)
    return [
        waiver.timestamp,
        waiver.user_email,
        last,
        first,
        waiver.school_id,
        waiver.waiver_reason,
        waiver.is_first_request,
        _yes_no(waiver.ack_future),
        _yes_no(waiver.ack_care),
    ]


class SheetsWriter:
    def __init__(self, spreadsheet_id: str, sheet_name: str, session=None, credentials=None):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self._session = session
        self._credentials = credentials

    @classmethod
    def from_settings(cls, settings: Settings) -> "SheetsWriter":
        return cls(
            settings.waiver_spreadsheet_id,
            settings.waiver_sheet_name,
            credentials=settings.sheets_credentials,
        )

    def append_row(self, row: list[Any]) -> None:
        url = SHEETS_APPEND_URL.format(
            spreadsheet_id=self.spreadsheet_id,
            range=requests.utils.quote(f"{self.sheet_name}!A1", safe=""),
        )
        try:
            session = self._session or service_account_session(self._credentials, SHEETS_SCOPES)
            response = session.post(url, params={"valueInputOption": "USER_ENTERED"}, json={"values": [row]})
        except (requests.RequestException, google.auth.exceptions.GoogleAuthError, MissingCredentials) as exc:
            raise SheetsError(str(exc)) from exc
        if response.status_code >= 300:
            raise SheetsError(f"values.append returned {response.status_code}: {response.text}")


class RecordingSheetsWriter:
    """Collects rows in :data:`SHEET_APPENDS` instead of calling Google."""

    def append_row(self, row: list[Any]) -> None:
        SHEET_APPENDS.append({"values": [row]})


def sheets_writer(settings: Settings):
    if settings.testing:
        return RecordingSheetsWriter()
    return SheetsWriter.from_settings(settings)

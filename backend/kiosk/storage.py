"""Helpers for pushing kiosk recordings into the shared Drive folder."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Mapping

import requests
import google.auth.exceptions
from fastapi import Request

from .config import Settings
from .google_apis import CLOUD_SCOPES, DRIVE_SCOPES, MissingCredentials, default_session, service_account_session

# purpose: persist kiosk audio/video recordings and hand back shareable links
# status: active

DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
SPEECH_RECOGNIZE_URL = "https://speech.googleapis.com/v1/speech:recognize"
DEFAULT_MIME_TYPE = "audio/webm"


class StorageError(Exception):
    pass


class InvalidPayload(ValueError):
    pass


def decode_base64_payload(data: str) -> bytes:
    """Decode a base64 body from the kiosk, tolerating a data: URL prefix."""

    # purpose: accept both raw base64 and FileReader-style data URLs
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidPayload("fileData is not valid base64") from exc


def _stringify_properties(metadata: Mapping[str, Any]) -> dict[str, str]:
    # Drive custom properties only hold strings
    return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in metadata.items()}


class DriveStorage:
    def __init__(self, folder_id: str, session=None, credentials: dict[str, Any] | None = None):
        self.folder_id = folder_id
        self._session = session
        self._credentials = credentials

    @classmethod
    def from_settings(cls, settings: Settings) -> "DriveStorage":
        return cls(settings.drive_folder_id, credentials=settings.drive_credentials)

    @property
    def session(self):
        if self._session is None:
            self._session = service_account_session(self._credentials, DRIVE_SCOPES)
        return self._session

    def upload(
        self,
        file_name: str,
        data: bytes,
        metadata: Mapping[str, Any],
        *,
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> str:
        """Create the file in the kiosk folder, make it world-readable and return its link."""

        # purpose: mirror the kiosk's create-then-share Drive sequence
        # outputs: webViewLink of the new file
        # status: active
        file_metadata = {
            "name": file_name,
            "parents": [self.folder_id],
            "properties": _stringify_properties(metadata),
        }
        files = {
            "metadata": ("metadata", json.dumps(file_metadata), "application/json; charset=UTF-8"),
            "file": (file_name, data, mime_type),
        }
        try:
            created = self.session.post(
                DRIVE_UPLOAD_URL,
                params={"uploadType": "multipart", "fields": "id, webViewLink", "supportsAllDrives": "true"},
                files=files,
            )
            if created.status_code >= 300:
                raise StorageError(f"Drive upload returned {created.status_code}: {created.text}")
            info = created.json()
            # A failure here leaves the uploaded file behind unshared.
            shared = self.session.post(
                f"{DRIVE_FILES_URL}/{info['id']}/permissions",
                params={"supportsAllDrives": "true"},
                json={"role": "reader", "type": "anyone"},
            )
            if shared.status_code >= 300:
                raise StorageError(f"Drive permission call returned {shared.status_code}: {shared.text}")
        except (
            requests.RequestException,
            google.auth.exceptions.GoogleAuthError,
            MissingCredentials,
            KeyError,
            ValueError,
        ) as exc:
            raise StorageError(str(exc)) from exc
        return info["webViewLink"]


class SpeechTranscriber:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        if self._session is None:
            self._session = default_session(CLOUD_SCOPES)
        return self._session

    def transcribe(self, audio: bytes, *, encoding: str, sample_rate_hertz: int, language_code: str) -> str:
        body = {
            "audio": {"content": base64.b64encode(audio).decode("ascii")},
            "config": {
                "encoding": encoding,
                "sampleRateHertz": sample_rate_hertz,
                "languageCode": language_code,
            },
        }
        try:
            response = self.session.post(SPEECH_RECOGNIZE_URL, json=body)
        except (requests.RequestException, google.auth.exceptions.GoogleAuthError) as exc:
            raise StorageError(str(exc)) from exc
        if response.status_code != 200:
            raise StorageError(f"speech:recognize returned {response.status_code}: {response.text}")
        results = response.json().get("results") or []
        return "\n".join(r["alternatives"][0]["transcript"] for r in results if r.get("alternatives"))


def get_drive_storage(request: Request) -> DriveStorage:
    return request.app.state.drive_storage


def get_transcriber(request: Request) -> SpeechTranscriber:
    return request.app.state.transcriber

import base64
import dataclasses

import pytest
import requests

from kiosk.main import app
from kiosk.storage import DriveStorage, SpeechTranscriber, StorageError, decode_base64_payload, InvalidPayload
from .conftest import FakeResponse, FakeSession

AUDIO = base64.b64encode(b"\x1aE\xdf\xa3 fake webm").decode()


@pytest.fixture
def drive(monkeypatch):
    session = FakeSession()
    storage = DriveStorage("folder-1", session=session)
    monkeypatch.setattr(app.state, "drive_storage", storage)
    return session


@pytest.fixture
def speech(monkeypatch):
    session = FakeSession()
    monkeypatch.setattr(app.state, "transcriber", SpeechTranscriber(session=session))
    return session


def test_upload_video_creates_shares_and_returns_link(client, drive):
    drive.responses.extend([
        FakeResponse(200, {"id": "file-9", "webViewLink": "https://drive.google.com/file/d/file-9/view"}),
        FakeResponse(200, {"id": "perm-1"}),
    ])
    resp = client.post(
        "/uploadVideo",
        json={"fileName": "msg.webm", "fileData": AUDIO, "metadata": {"userName": "Ada", "schoolId": 12}},
    )
    assert resp.status_code == 200
    assert resp.json() == {"link": "https://drive.google.com/file/d/file-9/view"}
    upload, share = drive.calls
    assert upload["params"]["supportsAllDrives"] == "true"
    assert upload["files"]["file"][1] == base64.b64decode(AUDIO)
    assert share["url"].endswith("/files/file-9/permissions")
    assert share["json"] == {"role": "reader", "type": "anyone"}


def test_upload_video_accepts_data_url(client, drive):
    drive.responses.extend([FakeResponse(200, {"id": "f", "webViewLink": "link"}), FakeResponse(200, {})])
    resp = client.post(
        "/uploadVideo",
        json={"fileName": "a.webm", "fileData": f"data:audio/webm;base64,{AUDIO}", "metadata": {}},
    )
    assert resp.status_code == 200


def test_upload_video_missing_fields(client, drive):
    resp = client.post("/uploadVideo", json={"fileName": "a.webm", "fileData": AUDIO})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing fileName, fileData, or metadata."
    assert drive.calls == []


def test_upload_video_bad_base64_is_500(client, drive):
    resp = client.post("/uploadVideo", json={"fileName": "a.webm", "fileData": "%%%not-base64", "metadata": {}})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to upload video."


def test_upload_video_permission_failure_is_500(client, drive):
    drive.responses.extend([FakeResponse(200, {"id": "f", "webViewLink": "link"}), FakeResponse(403, {"error": "no"})])
    resp = client.post("/uploadVideo", json={"fileName": "a.webm", "fileData": AUDIO, "metadata": {}})
    assert resp.status_code == 500


def test_upload_video_without_credentials(client, drive, monkeypatch):
    monkeypatch.setattr(app.state, "settings", dataclasses.replace(app.state.settings, drive_credentials=None))
    resp = client.post("/uploadVideo", json={"fileName": "a.webm", "fileData": AUDIO, "metadata": {}})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Server configuration error."


def test_transcribe_audio_joins_results(client, speech):
    speech.responses.append(FakeResponse(200, {
        "results": [
            {"alternatives": [{"transcript": "my screen"}, {"transcript": "my scream"}]},
            {"alternatives": [{"transcript": "is cracked"}]},
        ]
    }))
    resp = client.post("/transcribeAudio", json={"audioData": AUDIO})
    assert resp.status_code == 200
    assert resp.json() == {"transcript": "my screen\nis cracked"}
    config = speech.calls[0]["json"]["config"]
    assert config == {"encoding": "MP4", "sampleRateHertz": 16000, "languageCode": "en-US"}


def test_transcribe_audio_custom_config(client, speech):
    speech.responses.append(FakeResponse(200, {}))
    resp = client.post(
        "/transcribeAudio",
        json={"audioData": AUDIO, "encoding": "WEBM_OPUS", "sampleRateHertz": 48000, "languageCode": "es-US"},
    )
    assert resp.json() == {"transcript": ""}
    assert speech.calls[0]["json"]["config"]["encoding"] == "WEBM_OPUS"


def test_transcribe_audio_requires_audio(client, speech):
    resp = client.post("/transcribeAudio", json={})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing audioData in request body."


def test_transcribe_audio_upstream_failure(client, speech):
    speech.responses.append(FakeResponse(400, {"error": "bad audio"}))
    resp = client.post("/transcribeAudio", json={"audioData": AUDIO})
    assert resp.status_code == 500
    assert resp.json()["detail"].startswith("Failed to transcribe audio.")


def test_decode_base64_payload():
    assert decode_base64_payload("aGk=") == b"hi"
    assert decode_base64_payload("data:text/plain;base64,aGk=") == b"hi"
    with pytest.raises(InvalidPayload):
        decode_base64_payload("not base64!")


def test_drive_storage_wraps_transport_errors():
    storage = DriveStorage("folder", session=FakeSession([requests.ConnectionError("boom")]))
    with pytest.raises(StorageError):
        storage.upload("f", b"x", {})
    storage = DriveStorage("folder", session=FakeSession([FakeResponse(500, {"error": "x"})]))
    with pytest.raises(StorageError):
        storage.upload("f", b"x", {})

from kiosk.database import SessionLocal
from kiosk import models, sheets

HEADERS = {"x-api-key": "sync-test-key"}

WAIVER = {
    "timestamp": "10/1/2025, 9:15:00 AM",
    "userName": "Ada Lovelace",
    "userEmail": "ada@student.normanps.org",
    "schoolId": "12345",
    "waiverReason": "Screen broke during a fall.",
    "isFirstRequest": "Yes",
    "ackFuture": True,
    "ackCare": "Yes",
}


def _waivers():
    db = SessionLocal()
    try:
        return db.query(models.Waiver).all()
    finally:
        db.close()


def test_sync_rejects_wrong_or_missing_key(client):
    assert client.post("/syncWaiverFromSheet", json=WAIVER).status_code == 401
    resp = client.post("/syncWaiverFromSheet", json=WAIVER, headers={"x-api-key": "nope"})
    assert resp.status_code == 401
    assert _waivers() == []


def test_sync_key_checked_before_body(client):
    assert client.post("/syncWaiverFromSheet", json={}).status_code == 401


def test_sync_requires_timestamp(client):
    resp = client.post("/syncWaiverFromSheet", json={"userName": "Ada"}, headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Bad Request: Missing waiver data or timestamp."


def test_sync_inserts_then_skips_duplicate(client):
    first = client.post("/syncWaiverFromSheet", json=WAIVER, headers=HEADERS)
    assert first.status_code == 201
    assert first.json() == {"success": True}

    again = client.post("/syncWaiverFromSheet", json=WAIVER, headers=HEADERS)
    assert again.status_code == 200
    assert again.json() == {"message": "Duplicate waiver skipped."}
    assert len(_waivers()) == 1


def test_sync_distinct_timestamps_both_insert(client):
    client.post("/syncWaiverFromSheet", json=WAIVER, headers=HEADERS)
    later = {**WAIVER, "timestamp": "10/1/2025, 9:16:00 AM"}
    assert client.post("/syncWaiverFromSheet", json=later, headers=HEADERS).status_code == 201
    assert len(_waivers()) == 2


def test_sync_keeps_unknown_columns_and_fires_trigger(client):
    payload = {**WAIVER, "Grade": "7"}
    client.post("/syncWaiverFromSheet", json=payload, headers=HEADERS)
    (waiver,) = _waivers()
    assert waiver.extra == {"Grade": "7"}
    assert waiver.ack_future is True
    assert waiver.ack_care is True
    assert sheets.SHEET_APPENDS[-1]["values"][0][:4] == [
        WAIVER["timestamp"], WAIVER["userEmail"], "Lovelace", "Ada",
    ]

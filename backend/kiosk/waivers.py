from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from . import models

KIOSK_TIMEZONE = ZoneInfo("America/Chicago")

# payload key -> column; anything else is kept in Waiver.extra
WAIVER_FIELDS = {
    "timestamp": "timestamp",
    "userName": "user_name",
    "userEmail": "user_email",
    "schoolId": "school_id",
    "userLocation": "user_location",
    "assetTag": "asset_tag",
    "assetDescription": "asset_description",
    "waiverReason": "waiver_reason",
    "isFirstRequest": "is_first_request",
    "ackFuture": "ack_future",
    "ackCare": "ack_care",
    "audioLink": "audio_link",
}

_BOOL_COLUMNS = {"ack_future", "ack_care"}


def kiosk_timestamp(now: datetime | None = None) -> str:
    """Central-time stamp in the kiosk's ``M/D/YYYY, h:mm:ss AM`` form."""
    now = (now or datetime.now(KIOSK_TIMEZONE)).astimezone(KIOSK_TIMEZONE)
    hour = now.hour % 12 or 12
    return f"{now.month}/{now.day}/{now.year}, {hour}:{now:%M:%S} {now:%p}"


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"yes", "true", "1", "y"}
    return bool(value)


def waiver_from_payload(payload: Mapping[str, Any]) -> models.Waiver:
    columns: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in payload.items():
        column = WAIVER_FIELDS.get(key)
        if column is None:
            extra[key] = value
        elif column in _BOOL_COLUMNS:
            columns[column] = _as_bool(value)
        else:
            columns[column] = None if value is None else str(value)
    return models.Waiver(**columns, extra=extra)


def find_by_timestamp(db: Session, timestamp: str) -> models.Waiver | None:
    return db.query(models.Waiver).filter(models.Waiver.timestamp == timestamp).first()

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import require_staff, require_sync_key
from ..database import get_db
from ..waivers import find_by_timestamp, kiosk_timestamp, waiver_from_payload
from .. import models, schemas, tasks

logger = logging.getLogger(__name__)

router = APIRouter(tags=["waivers"])


@router.post("/syncWaiverFromSheet", dependencies=[Depends(require_sync_key)])
def sync_waiver_from_sheet(
    payload: Any = Body(None),
    db: Session = Depends(get_db),
):
    if not isinstance(payload, dict) or not payload.get("timestamp"):
        raise HTTPException(status_code=400, detail="Bad Request: Missing waiver data or timestamp.")
    timestamp = str(payload["timestamp"])
    if find_by_timestamp(db, timestamp) is not None:
        logger.info("Duplicate waiver found for timestamp: %s. Skipping.", timestamp)
        return JSONResponse(status_code=200, content={"message": "Duplicate waiver skipped."})

    waiver = waiver_from_payload({**payload, "timestamp": timestamp})
    db.add(waiver)
    db.commit()
    logger.info("Successfully synced new waiver for %s", waiver.user_name)
    tasks.enqueue_waiver_created(waiver.id)
    return JSONResponse(status_code=201, content={"success": True})


@router.post("/waivers", response_model=schemas.WaiverOut, status_code=201)
def submit_waiver(waiver: schemas.WaiverCreate, db: Session = Depends(get_db)):
    data: Dict[str, Any] = waiver.model_dump()
    data["timestamp"] = data["timestamp"] or kiosk_timestamp()
    db_waiver = models.Waiver(**data, extra={})
    db.add(db_waiver)
    db.commit()
    db.refresh(db_waiver)
    tasks.enqueue_waiver_created(db_waiver.id)
    return db_waiver


@router.get("/waivers", response_model=list[schemas.WaiverOut])
async def list_waivers(
    db: Session = Depends(get_db),
    user: models.User = Depends(require_staff),
):
    return db.query(models.Waiver).order_by(models.Waiver.timestamp.desc()).all()

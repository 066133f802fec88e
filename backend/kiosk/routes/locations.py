from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import require_leadership, require_staff
from .. import models, schemas

router = APIRouter(prefix="/locations", tags=["locations"])


def _get_location(db: Session, loc_id: str) -> models.Location:
    loc = db.get(models.Location, loc_id)
    if not loc:
        raise HTTPException(status_code=404, detail="Location not found")
    return loc


@router.post("", response_model=schemas.LocationOut)
async def create_location(
    loc: schemas.LocationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_leadership),
):
    existing = db.query(models.Location).filter(models.Location.name == loc.name).first()
    if existing:
        raise HTTPException(status_code=400, detail="Location already exists")
    db_loc = models.Location(name=loc.name, assigned_tech_emails=[str(e) for e in loc.assigned_tech_emails])
    db.add(db_loc)
    db.commit()
    db.refresh(db_loc)
    return db_loc


@router.get("", response_model=list[schemas.LocationOut])
async def list_locations(
    db: Session = Depends(get_db),
    user: models.User = Depends(require_staff),
):
    return db.query(models.Location).order_by(models.Location.name).all()


@router.post("/{loc_id}/emails", response_model=schemas.LocationOut)
async def assign_technician(
    loc_id: str,
    body: schemas.LocationEmail,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_leadership),
):
    loc = _get_location(db, loc_id)
    loc.add_email(str(body.email))
    db.commit()
    db.refresh(loc)
    return loc


@router.delete("/{loc_id}/emails/{email}", response_model=schemas.LocationOut)
async def unassign_technician(
    loc_id: str,
    email: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_leadership),
):
    loc = _get_location(db, loc_id)
    loc.remove_email(email)
    db.commit()
    db.refresh(loc)
    return loc

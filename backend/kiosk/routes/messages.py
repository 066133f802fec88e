from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import require_staff
from ..database import get_db
from .. import models, schemas, tasks

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=schemas.MessageOut, status_code=201)
def leave_message(message: schemas.MessageCreate, db: Session = Depends(get_db)):
    db_message = models.Message(**message.model_dump())
    db.add(db_message)
    db.commit()
    db.refresh(db_message)
    tasks.enqueue_message_created(db_message.id)
    return db_message


@router.get("", response_model=list[schemas.MessageOut])
async def list_messages(
    db: Session = Depends(get_db),
    user: models.User = Depends(require_staff),
):
    return db.query(models.Message).order_by(models.Message.created_at.desc()).all()

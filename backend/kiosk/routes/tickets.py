from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import require_staff
from ..database import get_db
from ..kiosk_flow import common_patterns
from .. import models, schemas

router = APIRouter(prefix="/tickets", tags=["tickets"])

BULK_CLOSE_NOTES = "Bulk Closed."


@router.post("", response_model=schemas.TicketOut, status_code=201)
async def log_ticket(ticket: schemas.TicketCreate, db: Session = Depends(get_db)):
    db_ticket = models.Ticket(**ticket.model_dump(), status=models.TicketStatus.open)
    db.add(db_ticket)
    db.commit()
    db.refresh(db_ticket)
    return db_ticket


@router.get("", response_model=list[schemas.TicketOut])
async def list_tickets(
    status: Optional[models.TicketStatus] = Query(None, description="Filter by Open or Closed"),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_staff),
):
    query = db.query(models.Ticket)
    if status is not None:
        query = query.filter(models.Ticket.status == status)
    return query.order_by(models.Ticket.created_at.desc()).all()


@router.get("/history/{school_id}", response_model=list[schemas.TicketOut])
async def ticket_history(
    school_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_staff),
):
    return (
        db.query(models.Ticket)
        .filter(models.Ticket.school_id == school_id)
        .order_by(models.Ticket.created_at.desc())
        .all()
    )


@router.get("/context", response_model=schemas.HistoryContext)
async def history_context(
    iiq_user_id: str = Query(..., alias="iiqUserId"),
    asset_tag: str = Query(..., alias="assetTag"),
    db: Session = Depends(get_db),
):
    user_tickets = (
        db.query(models.Ticket)
        .filter(models.Ticket.iiq_user_id == iiq_user_id)
        .order_by(models.Ticket.created_at.desc())
        .limit(5)
        .all()
    )
    asset_tickets = (
        db.query(models.Ticket)
        .filter(models.Ticket.asset_tag == asset_tag)
        .order_by(models.Ticket.created_at.desc())
        .limit(10)
        .all()
    )
    problems = [t.problem_description for t in user_tickets + asset_tickets]
    return schemas.HistoryContext(
        user_ticket_history=[schemas.TicketOut.model_validate(t) for t in user_tickets],
        asset_ticket_history=[schemas.TicketOut.model_validate(t) for t in asset_tickets],
        common_patterns=common_patterns(problems),
    )


@router.post("/close", response_model=schemas.BulkCloseResult)
async def bulk_close(
    body: schemas.BulkClose,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_staff),
):
    closed, skipped = [], []
    for ticket_id in body.ticket_ids:
        ticket = db.get(models.Ticket, ticket_id)
        if ticket is None or ticket.status == models.TicketStatus.closed:
            skipped.append(ticket_id)
            continue
        ticket.close(BULK_CLOSE_NOTES)
        closed.append(ticket_id)
    db.commit()
    return schemas.BulkCloseResult(closed=closed, skipped=skipped)


@router.post("/{ticket_id}/close", response_model=schemas.TicketOut)
async def close_ticket(
    ticket_id: str,
    body: schemas.TicketClose,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_staff),
):
    ticket = db.get(models.Ticket, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    try:
        ticket.close(body.resolution_notes)
    except models.TicketAlreadyClosed:
        raise HTTPException(status_code=409, detail="Ticket is already closed")
    db.commit()
    db.refresh(ticket)
    return ticket

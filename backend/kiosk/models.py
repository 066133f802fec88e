import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    String,
    Text,
)

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    technician = "technician"
    leadership = "leadership"
    guest = "guest"


STAFF_ROLES = (Role.technician, Role.leadership)


class TicketStatus(str, enum.Enum):
    open = "Open"
    closed = "Closed"


class TicketAlreadyClosed(Exception):
    pass


class User(Base):
    __tablename__ = "users"
    # identity-provider uid, not a generated key
    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String)
    role = Column(Enum(Role, native_enum=False, length=16), nullable=False, default=Role.guest)


class Location(Base):
    __tablename__ = "locations"
    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, unique=True, nullable=False)
    assigned_tech_emails = Column(JSON, default=list, nullable=False)

    def add_email(self, email: str) -> None:
        emails = list(self.assigned_tech_emails or [])
        if email not in emails:
            emails.append(email)
        # reassign so the JSON column is flagged dirty
        self.assigned_tech_emails = emails

    def remove_email(self, email: str) -> None:
        self.assigned_tech_emails = [e for e in (self.assigned_tech_emails or []) if e != email]


class Ticket(Base):
    __tablename__ = "tickets"
    id = Column(String, primary_key=True, default=_uuid)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    status = Column(
        Enum(TicketStatus, native_enum=False, length=8,
             values_callable=lambda e: [m.value for m in e]),
        default=TicketStatus.open,
        nullable=False,
        index=True,
    )
    requestor_name = Column(String)
    school_id = Column(String, index=True)
    user_location = Column(String)
    iiq_user_id = Column(String)
    iiq_location_id = Column(String)
    device = Column(String, default="N/A")
    asset_tag = Column(String, default="N/A")
    subject = Column(String)
    problem_description = Column(Text)
    video_link = Column(String, default="#")
    incident_iq_ticket_id = Column(String)
    incident_iq_ticket_number = Column(String)
    resolution_notes = Column(Text)
    closed_at = Column(DateTime(timezone=True))

    def close(self, notes: str | None = None) -> None:
        if self.status == TicketStatus.closed:
            raise TicketAlreadyClosed(self.id)
        self.status = TicketStatus.closed
        self.closed_at = _utcnow()
        self.resolution_notes = notes or ""


class Message(Base):
    __tablename__ = "messages"
    id = Column(String, primary_key=True, default=_uuid)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    user_name = Column(String)
    user_location = Column(String)
    school_id = Column(String)
    summary = Column(Text)
    video_link = Column(String, default="#")


class Waiver(Base):
    __tablename__ = "waivers"
    id = Column(String, primary_key=True, default=_uuid)
    # Central-time string stamped by the kiosk; the only dedup key for sheet sync
    timestamp = Column(String, nullable=False, index=True)
    user_name = Column(String)
    user_email = Column(String)
    school_id = Column(String)
    user_location = Column(String)
    asset_tag = Column(String)
    asset_description = Column(String)
    waiver_reason = Column(Text)
    is_first_request = Column(String)
    ack_future = Column(Boolean, default=False)
    ack_care = Column(Boolean, default=False)
    audio_link = Column(String)
    extra = Column(JSON, default=dict)

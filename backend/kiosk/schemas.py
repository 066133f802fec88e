from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .models import Role, TicketStatus


class CamelModel(BaseModel):
    """Kiosk clients speak camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Proxy and ingestion bodies keep every field optional so a missing one is
# reported with the route's own 400 message instead of a schema error.

class PreauthorizeRequest(CamelModel):
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None


class PreauthorizeResult(BaseModel):
    success: bool
    message: str


class FindUserRequest(CamelModel):
    search_term: Optional[str] = None


class IncidentIqProxyRequest(CamelModel):
    path: Optional[str] = None
    method: Optional[str] = None
    body: Any = None


class GeminiProxyRequest(CamelModel):
    body: Any = None


class UploadVideoRequest(CamelModel):
    file_name: Optional[str] = None
    file_data: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    mime_type: Optional[str] = None


class UploadVideoResult(BaseModel):
    link: str


class TranscribeRequest(CamelModel):
    audio_data: Optional[str] = None
    encoding: str = "MP4"
    sample_rate_hertz: int = 16000
    language_code: str = "en-US"


class TranscribeResult(BaseModel):
    transcript: str


class UserOut(CamelOut):
    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    role: Role = Role.guest


class LocationCreate(CamelModel):
    name: str = Field(min_length=1)
    assigned_tech_emails: List[EmailStr] = []


class LocationEmail(CamelModel):
    email: EmailStr


class LocationOut(CamelOut):
    id: str
    name: str
    assigned_tech_emails: List[str] = []


class TicketCreate(CamelModel):
    requestor_name: str
    school_id: Optional[str] = None
    user_location: Optional[str] = None
    iiq_user_id: Optional[str] = None
    iiq_location_id: Optional[str] = None
    device: str = "N/A"
    asset_tag: str = "N/A"
    subject: Optional[str] = None
    problem_description: str
    video_link: str = "#"
    incident_iq_ticket_id: Optional[str] = None
    incident_iq_ticket_number: Optional[str] = None


class TicketOut(CamelOut):
    id: str
    created_at: datetime
    status: TicketStatus
    requestor_name: Optional[str] = None
    school_id: Optional[str] = None
    user_location: Optional[str] = None
    iiq_user_id: Optional[str] = None
    device: Optional[str] = None
    asset_tag: Optional[str] = None
    subject: Optional[str] = None
    problem_description: Optional[str] = None
    video_link: Optional[str] = None
    incident_iq_ticket_id: Optional[str] = None
    incident_iq_ticket_number: Optional[str] = None
    resolution_notes: Optional[str] = None
    closed_at: Optional[datetime] = None


class TicketClose(CamelModel):
    resolution_notes: str = ""


class BulkClose(CamelModel):
    ticket_ids: List[str] = Field(min_length=1)


class BulkCloseResult(CamelModel):
    closed: List[str]
    skipped: List[str]


class HistoryContext(CamelModel):
    user_ticket_history: List[TicketOut]
    asset_ticket_history: List[TicketOut]
    common_patterns: List[str]


class MessageCreate(CamelModel):
    user_name: str
    user_location: Optional[str] = None
    school_id: Optional[str] = None
    summary: str
    video_link: str = "#"


class MessageOut(CamelOut):
    id: str
    created_at: datetime
    user_name: Optional[str] = None
    user_location: Optional[str] = None
    school_id: Optional[str] = None
    summary: Optional[str] = None
    video_link: Optional[str] = None


class WaiverCreate(CamelModel):
    timestamp: Optional[str] = None
    user_name: str
    user_email: Optional[str] = None
    school_id: Optional[str] = None
    user_location: Optional[str] = None
    asset_tag: Optional[str] = None
    asset_description: Optional[str] = None
    waiver_reason: str
    is_first_request: str = "Yes"
    ack_future: bool = False
    ack_care: bool = False
    audio_link: Optional[str] = None


class WaiverOut(CamelOut):
    id: str
    timestamp: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    school_id: Optional[str] = None
    user_location: Optional[str] = None
    asset_tag: Optional[str] = None
    asset_description: Optional[str] = None
    waiver_reason: Optional[str] = None
    is_first_request: Optional[str] = None
    ack_future: bool = False
    ack_care: bool = False
    audio_link: Optional[str] = None

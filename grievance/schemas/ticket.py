from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum

from grievance.schemas.classification import Classification

class TicketStatusEnum(str, Enum):
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PENDING_INFO = "pending_info"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"

class EscalationLevelEnum(str, Enum):
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"
    ESCALATED = "escalated"

class Location(BaseModel):
    type: Optional[str] = Field(None, description="Kind of place, e.g. hostel, library, lab.")
    block: Optional[str] = None
    floor: Optional[str] = None
    room: Optional[str] = None

    def describe(self) -> str:
        parts = [self.type]
        if self.block:
            parts.append(f"Block {self.block}")
        if self.floor:
            parts.append(f"Floor {self.floor}")
        if self.room:
            parts.append(f"Room {self.room}")
        return ", ".join(p for p in parts if p)

class StatusHistoryResponse(BaseModel):
    id: int
    ticket_code: str
    previous_status: Optional[TicketStatusEnum] = Field(None, description="The status before the change.")
    new_status: TicketStatusEnum = Field(..., description="The status after the change.")
    changed_by: Optional[str] = Field(None, description="The user or process that made the change.")
    changed_at: datetime
    notes: Optional[str] = None
    is_automatic: bool = False

    model_config = ConfigDict(from_attributes=True)


class TicketCreate(BaseModel):
    grievance_text: str = Field(..., description="The student's free-text report.")
    location: Optional[Location] = Field(None, description="Where the issue is.")
    is_anonymous: bool = Field(False, description="Hide the submitter's name from the ticket.")
    user_id: str = Field(..., description="The submitting user.")

class TicketCreated(BaseModel):
    ticket_code: str
    classification: Classification
    message: str = Field(..., description="Acknowledgement text for the student.")
    expected_resolution_date: Optional[datetime] = None

class TicketAssign(BaseModel):
    assigned_to: str
    actor_id: str

class DuplicateMark(BaseModel):
    duplicate_of: str = Field(..., description="Code of the ticket this one repeats.")
    actor_id: str

class SimilarityQuery(BaseModel):
    text: str
    limit: int = Field(3, ge=1, le=10)

class TicketResponse(BaseModel):
    ticket_code: str
    student_id: Optional[str] = None
    student_email: Optional[str] = None
    student_name: str
    original_text: str
    classification: Optional[Classification] = None
    location: Optional[Location] = None
    status: TicketStatusEnum
    assigned_to: Optional[str] = None
    assigned_department: Optional[str] = None
    priority: int
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    expected_resolution_date: Optional[datetime] = None
    is_duplicate: bool = False
    duplicate_of: Optional[str] = None
    related_tickets: List[str] = []
    attachments: List[str] = []
    is_anonymous: bool = False
    status_notes: Optional[str] = None
    escalation_level: EscalationLevelEnum = EscalationLevelEnum.NONE

    model_config = ConfigDict(from_attributes=True)


class EscalationResponse(BaseModel):
    ticket_code: str
    status: TicketStatusEnum
    escalation_level: EscalationLevelEnum
    expected_resolution_date: Optional[datetime] = None
    hours_remaining: Optional[float] = Field(None, description="Negative once the deadline has passed.")


class StatusUpdateRequest(BaseModel):
    ticket_code: str = Field(..., description="The ticket to move.")
    new_status: str = Field(..., description="The target status.")
    actor_id: str = Field(..., description="The user or service making the change.")
    notes: Optional[str] = Field(None, description="Free-text note kept on the ticket and in history.")

class SweepResponse(BaseModel):
    escalated: List[str] = []

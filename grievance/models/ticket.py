from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON, Boolean
from grievance.core.clock import utcnow
from grievance.core.db import Base

TICKET_COUNTER = "tickets"

class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    ticket_code = Column(String(32), unique=True, nullable=False, index=True)

    student_id = Column(String(64), ForeignKey("users.user_id"), nullable=False, index=True)
    student_email = Column(String(255), nullable=False)
    student_name = Column(String(255), nullable=False)

    original_text = Column(Text, nullable=False)
    # classification and location stored as structured JSON blobs
    classification = Column(JSON, nullable=True)
    location = Column(JSON, nullable=True)

    status = Column(String(50), nullable=False, default="open", index=True)
    assigned_to = Column(String(255), nullable=True, index=True)
    assigned_department = Column(String(100), nullable=True, index=True)
    priority = Column(Integer, nullable=False, default=2)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow)
    resolved_at = Column(DateTime, nullable=True)
    expected_resolution_date = Column(DateTime, nullable=True)

    is_duplicate = Column(Boolean, nullable=False, default=False)
    duplicate_of = Column(String(32), nullable=True)
    related_tickets = Column(JSON, nullable=False, default=list)
    attachments = Column(JSON, nullable=False, default=list)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    status_notes = Column(Text, nullable=True)

class StatusHistory(Base):
    """
    Append-only record of every status mutation on a ticket.
    """
    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, index=True)
    ticket_code = Column(String(32), ForeignKey("tickets.ticket_code", ondelete="CASCADE"), nullable=False, index=True)
    previous_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=False)
    changed_by = Column(String(255), nullable=True, index=True)
    changed_at = Column(DateTime, default=utcnow, index=True)
    notes = Column(Text, nullable=True)
    is_automatic = Column(Boolean, nullable=False, default=False)

class Counter(Base):
    __tablename__ = "counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)

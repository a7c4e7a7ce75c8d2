from datetime import datetime
from typing import Callable, Optional
from fastapi import Depends
from sqlalchemy.orm import Session
from grievance.core.classifier import Classifier, get_classifier
from grievance.core.clock import utcnow
from grievance.core.db import get_db
from grievance.core.lifecycle import TicketLifecycle
from grievance.core.sla import ticket_escalation_level
from grievance.models.ticket import Ticket
from grievance.schemas.ticket import TicketResponse, EscalationLevelEnum

def get_clock() -> Callable[[], datetime]:
    return utcnow

def get_lifecycle(
    db: Session = Depends(get_db),
    classifier: Classifier = Depends(get_classifier),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> TicketLifecycle:
    return TicketLifecycle(db, classifier, clock=clock)

def ticket_view(ticket: Ticket, now: datetime, viewer_id: Optional[str] = None) -> TicketResponse:
    """
    Serialise a ticket with its live escalation level. Anonymous tickets keep the
    submitter's identity in the store but only show it to the submitter.
    """
    update = {"escalation_level": EscalationLevelEnum(ticket_escalation_level(ticket, now))}
    if ticket.is_anonymous and viewer_id != ticket.student_id:
        update["student_id"] = None
        update["student_email"] = None
    return TicketResponse.model_validate(ticket).model_copy(update=update)

import logging
from datetime import datetime
from typing import Callable, Optional
from sqlalchemy.orm import Session
from grievance.core.clock import utcnow
from grievance.core.errors import InvalidTransitionError, ValidationError
from grievance.models.ticket import Ticket, StatusHistory

logger = logging.getLogger(__name__)

class TicketStatus:
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PENDING_INFO = "pending_info"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REOPENED = "reopened"

ALL_STATUSES = (
    TicketStatus.OPEN,
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.PENDING_INFO,
    TicketStatus.ESCALATED,
    TicketStatus.RESOLVED,
    TicketStatus.CLOSED,
    TicketStatus.REOPENED,
)

# Statuses that count as "done" for stats, SLA and escalation purposes.
RESOLVED_STATES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})

VALID_TRANSITIONS = {
    TicketStatus.OPEN: [TicketStatus.ASSIGNED],
    TicketStatus.ASSIGNED: [TicketStatus.IN_PROGRESS],
    TicketStatus.IN_PROGRESS: [TicketStatus.PENDING_INFO, TicketStatus.ESCALATED, TicketStatus.RESOLVED],
    TicketStatus.PENDING_INFO: [TicketStatus.IN_PROGRESS],
    TicketStatus.ESCALATED: [TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED],
    TicketStatus.RESOLVED: [TicketStatus.CLOSED, TicketStatus.REOPENED],
    TicketStatus.CLOSED: [TicketStatus.REOPENED],
    TicketStatus.REOPENED: [TicketStatus.IN_PROGRESS],
}

def is_allowed(current_status: str, new_status: str, enforce_graph: bool = True) -> bool:
    # Re-applying the current status is always accepted and still audited.
    if not enforce_graph or current_status == new_status:
        return True
    return new_status in VALID_TRANSITIONS.get(current_status, [])

class TicketStateMachine:
    def __init__(self, db: Session, enforce_graph: bool = True, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.enforce_graph = enforce_graph
        self.clock = clock

    def validate_transition(self, current_status: str, new_status: str):
        if new_status not in ALL_STATUSES:
            raise ValidationError(f"Unknown status {new_status!r}. Expected one of: {', '.join(ALL_STATUSES)}")
        if not is_allowed(current_status, new_status, self.enforce_graph):
            raise InvalidTransitionError(
                f"Transition from {current_status} to {new_status} is not permitted.",
                detail={
                    "error": "Invalid status transition",
                    "current_status": current_status,
                    "attempted_status": new_status,
                    "allowed": VALID_TRANSITIONS.get(current_status, []),
                },
            )

    def transition(self, ticket: Ticket, new_status: str, actor: Optional[str], notes: Optional[str] = None, is_automatic: bool = False) -> Ticket:
        """
        Move a ticket to a new status and append the history row within the session.
        Does NOT commit. The caller must commit the transaction.

        Side effects depend on the new status only: "resolved" stamps resolved_at,
        and nothing clears it again, not even a reopen.
        """
        self.validate_transition(ticket.status, new_status)

        previous_status = ticket.status
        now = self.clock()

        ticket.status = new_status
        ticket.updated_at = now
        ticket.status_notes = notes
        if new_status == TicketStatus.RESOLVED:
            ticket.resolved_at = now

        self.db.add(StatusHistory(
            ticket_code=ticket.ticket_code,
            previous_status=previous_status,
            new_status=new_status,
            changed_by=actor,
            changed_at=now,
            notes=notes,
            is_automatic=is_automatic,
        ))
        logger.info("Ticket %s: %s -> %s by %s", ticket.ticket_code, previous_status, new_status, actor)

        return ticket

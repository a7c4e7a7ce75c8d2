from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from grievance.api.deps import get_lifecycle, ticket_view
from grievance.core.lifecycle import TicketLifecycle
from grievance.core.sla import ticket_escalation_level, hours_remaining
from grievance.schemas.classification import ClassificationOverride
from grievance.schemas.ticket import (
    TicketCreate, TicketCreated, TicketResponse, TicketAssign, DuplicateMark,
    SimilarityQuery, EscalationResponse, StatusHistoryResponse,
)

router = APIRouter(prefix="/tickets", tags=["Tickets"])

@router.post("", response_model=TicketCreated, status_code=status.HTTP_201_CREATED)
def create_ticket(ticket_in: TicketCreate, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Submit a grievance. The text is classified and routed, a ticket code is
    minted and the SLA deadline set. Classification failures never fail the
    request; the ticket is filed for manual review instead.
    """
    ticket, classification = lifecycle.create_ticket(
        text=ticket_in.grievance_text,
        submitter_id=ticket_in.user_id,
        location=ticket_in.location,
        is_anonymous=ticket_in.is_anonymous,
    )
    return TicketCreated(
        ticket_code=ticket.ticket_code,
        classification=classification,
        message=lifecycle.acknowledgement(ticket, classification),
        expected_resolution_date=ticket.expected_resolution_date,
    )


@router.get("", response_model=List[TicketResponse])
def get_tickets(
    user_id: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    viewer_id: Optional[str] = None,
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
):
    """
    List tickets newest first: every ticket for the admin view, or only the
    given user's tickets.
    """
    now = lifecycle.clock()
    return [ticket_view(t, now, viewer_id) for t in lifecycle.list_tickets(user_id=user_id, limit=limit)]


@router.post("/similar", response_model=List[TicketResponse])
def similar_tickets(query: SimilarityQuery, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Check a draft grievance against existing tickets before it is submitted.
    """
    now = lifecycle.clock()
    return [ticket_view(t, now) for t in lifecycle.find_similar(query.text, limit=query.limit)]


@router.get("/{ticket_code}", response_model=TicketResponse)
def get_ticket(ticket_code: str, viewer_id: Optional[str] = None, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    return ticket_view(lifecycle.get_ticket(ticket_code), lifecycle.clock(), viewer_id)


@router.get("/{ticket_code}/escalation", response_model=EscalationResponse)
def get_escalation(ticket_code: str, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Time-derived escalation signal. Computed on every read and never stored.
    """
    ticket = lifecycle.get_ticket(ticket_code)
    now = lifecycle.clock()
    return EscalationResponse(
        ticket_code=ticket.ticket_code,
        status=ticket.status,
        escalation_level=ticket_escalation_level(ticket, now),
        expected_resolution_date=ticket.expected_resolution_date,
        hours_remaining=hours_remaining(ticket.expected_resolution_date, now),
    )


@router.get("/{ticket_code}/history", response_model=List[StatusHistoryResponse])
def get_ticket_history(ticket_code: str, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    return lifecycle.get_history(ticket_code)


@router.patch("/{ticket_code}", response_model=TicketResponse)
def assign_ticket(ticket_code: str, update_data: TicketAssign, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Assign a ticket to a staff member. An open ticket moves to "assigned".
    Other status changes MUST go through /status.
    """
    ticket = lifecycle.assign_ticket(ticket_code, update_data.assigned_to, update_data.actor_id)
    return ticket_view(ticket, lifecycle.clock())


@router.post("/{ticket_code}/override", response_model=TicketResponse)
def override_classification(ticket_code: str, override: ClassificationOverride, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Correct the AI classification. A new urgency recomputes priority and deadline.
    """
    ticket = lifecycle.override_classification(
        ticket_code,
        override.actor_id,
        urgency=override.urgency,
        department=override.department,
        category=override.category,
    )
    return ticket_view(ticket, lifecycle.clock())


@router.post("/{ticket_code}/duplicate", response_model=TicketResponse)
def mark_duplicate(ticket_code: str, mark: DuplicateMark, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    ticket = lifecycle.mark_duplicate(ticket_code, mark.duplicate_of, mark.actor_id)
    return ticket_view(ticket, lifecycle.clock())

from fastapi import APIRouter, Depends, status
from grievance.api.deps import get_lifecycle, ticket_view
from grievance.core.lifecycle import TicketLifecycle, SYSTEM_ACTOR
from grievance.schemas.ticket import StatusUpdateRequest, TicketResponse, SweepResponse

router = APIRouter(prefix="/status", tags=["Status"])

@router.post("", response_model=TicketResponse, status_code=status.HTTP_200_OK)
def update_status(request: StatusUpdateRequest, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Move a ticket to a new status. Edges outside the status graph are rejected
    with 409 while the graph is enforced; every accepted change, including
    re-applying the current status, is written to the history.
    """
    ticket = lifecycle.update_status(
        request.ticket_code,
        request.new_status,
        request.actor_id,
        notes=request.notes,
    )
    return ticket_view(ticket, lifecycle.clock())


@router.post("/sweep", response_model=SweepResponse)
def escalate_overdue(actor_id: str = SYSTEM_ACTOR, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Escalate every ticket past its SLA deadline that may enter "escalated".
    Runs only when called.
    """
    return SweepResponse(escalated=lifecycle.escalate_overdue(actor_id))

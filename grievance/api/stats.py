from typing import List, Optional
from fastapi import APIRouter, Depends
from grievance.api.deps import get_lifecycle, ticket_view
from grievance.core.config import settings
from grievance.core.lifecycle import TicketLifecycle
from grievance.core.stats import compute_dashboard_stats, department_scorecards, category_trends
from grievance.schemas.stats import DashboardStats, DepartmentScorecard, CategoryTrend

router = APIRouter(prefix="/stats", tags=["Stats"])

@router.get("", response_model=DashboardStats)
def get_dashboard_stats(user_id: Optional[str] = None, lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    """
    Dashboard figures recomputed from the ticket list on every call: the admin
    view without a user, or one student's tickets.
    """
    now = lifecycle.clock()
    tickets = lifecycle.all_tickets(user_id=user_id)
    stats = compute_dashboard_stats(tickets, now=now, recent=settings.RECENT_TICKETS)
    stats["recent_tickets"] = [ticket_view(t, now, user_id) for t in stats["recent_tickets"]]
    return stats


@router.get("/departments", response_model=List[DepartmentScorecard])
def get_department_scorecards(lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    return department_scorecards(lifecycle.all_tickets(), now=lifecycle.clock())


@router.get("/trends", response_model=List[CategoryTrend])
def get_category_trends(lifecycle: TicketLifecycle = Depends(get_lifecycle)):
    return category_trends(lifecycle.all_tickets(), now=lifecycle.clock())

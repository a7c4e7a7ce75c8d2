from pydantic import BaseModel, Field
from typing import Dict, List, Literal

from grievance.schemas.ticket import TicketResponse

class DepartmentScorecard(BaseModel):
    department: str
    name: str
    total_tickets: int
    resolved_tickets: int
    pending_tickets: int
    avg_resolution_hours: float
    sla_compliance: float = Field(..., description="Percentage of deadlines met or still open in time.")
    grade: Literal["A+", "A", "B", "C", "D", "F"]
    trend: Literal["up", "stable", "down"]

class DashboardStats(BaseModel):
    total_tickets: int
    resolved_tickets: int
    pending_tickets: int
    avg_resolution_time: float = Field(..., description="Mean hours from creation to resolution.")
    sla_compliance: float
    tickets_by_category: Dict[str, int]
    tickets_by_urgency: Dict[str, int]
    tickets_by_status: Dict[str, int]
    recent_tickets: List[TicketResponse]
    departments: List[DepartmentScorecard]

class CategoryTrend(BaseModel):
    category: str
    last_week: int
    previous_week: int
    change: int
    trend: Literal["increasing", "decreasing", "stable"]

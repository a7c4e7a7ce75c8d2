"""
SLA deadlines, urgency-derived priority and the time-based escalation signal.

Everything here is a pure function of its arguments; the escalation level is
recomputed on every read and never stored on the ticket.
"""
from datetime import datetime, timedelta
from typing import Optional

from grievance.core.fsm import RESOLVED_STATES

SLA_HOURS = {
    "critical": 4,
    "high": 24,
    "medium": 72,
    "low": 168,
}
DEFAULT_SLA_HOURS = 72

# Lower is more urgent.
PRIORITY_BY_URGENCY = {
    "critical": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
}
DEFAULT_PRIORITY = 2

CRITICAL_WINDOW = timedelta(hours=2)
WARNING_WINDOW = timedelta(hours=6)


class EscalationLevel:
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"
    ESCALATED = "escalated"


def sla_hours_for(urgency: Optional[str]) -> int:
    return SLA_HOURS.get(urgency, DEFAULT_SLA_HOURS)


def compute_deadline(urgency: Optional[str], start: datetime) -> datetime:
    return start + timedelta(hours=sla_hours_for(urgency))


def priority_for(urgency: Optional[str]) -> int:
    return PRIORITY_BY_URGENCY.get(urgency, DEFAULT_PRIORITY)


def derive_escalation_level(status: str, deadline: Optional[datetime], now: datetime) -> str:
    if status in RESOLVED_STATES or deadline is None:
        return EscalationLevel.NONE

    remaining = deadline - now
    if remaining < timedelta(0):
        return EscalationLevel.ESCALATED
    if remaining <= CRITICAL_WINDOW:
        return EscalationLevel.CRITICAL
    if remaining <= WARNING_WINDOW:
        return EscalationLevel.WARNING
    return EscalationLevel.NONE


def ticket_escalation_level(ticket, now: datetime) -> str:
    return derive_escalation_level(ticket.status, ticket.expected_resolution_date, now)


def hours_remaining(deadline: Optional[datetime], now: datetime) -> Optional[float]:
    if deadline is None:
        return None
    return round((deadline - now).total_seconds() / 3600, 2)

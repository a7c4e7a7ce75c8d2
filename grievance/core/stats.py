"""
Dashboard aggregation.

All figures are recomputed from the ticket list on every call; nothing here
touches the database. A ticket missing an optional field (classification,
deadline, timestamps) still counts towards the totals and is only left out of
the aggregate that needs that field.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from grievance.core.clock import utcnow
from grievance.core.config import DEPARTMENTS
from grievance.core.fsm import RESOLVED_STATES

UNASSIGNED = "unassigned"

GRADE_THRESHOLDS = (
    (95, "A+"),
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)

TREND_WINDOW = timedelta(days=7)
TREND_THRESHOLD = 2


def _is_resolved(ticket) -> bool:
    return ticket.status in RESOLVED_STATES


def _analysis(ticket) -> dict:
    return ticket.classification or {}


def average_resolution_hours(tickets: Iterable) -> float:
    durations = [
        (t.resolved_at - t.created_at).total_seconds() / 3600
        for t in tickets
        if t.resolved_at is not None and t.created_at is not None
    ]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations), 1)


def met_sla(ticket, now: datetime) -> bool:
    deadline = ticket.expected_resolution_date
    if _is_resolved(ticket):
        # Closed without ever passing through "resolved": nothing to measure.
        if ticket.resolved_at is None:
            return True
        return ticket.resolved_at <= deadline
    return now <= deadline


def sla_compliance(tickets: Iterable, now: Optional[datetime] = None) -> float:
    """Percentage of tickets with a deadline that met it; 100 when none has one."""
    now = now or utcnow()
    with_deadline = [t for t in tickets if t.expected_resolution_date is not None]
    if not with_deadline:
        return 100.0
    met = sum(1 for t in with_deadline if met_sla(t, now))
    return round(met / len(with_deadline) * 100, 1)


def grade_for(compliance: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if compliance >= threshold:
            return grade
    return "F"


def trend_for(compliance: float) -> str:
    if compliance > 80:
        return "up"
    if compliance > 50:
        return "stable"
    return "down"


def department_of(ticket) -> str:
    return ticket.assigned_department or _analysis(ticket).get("department") or UNASSIGNED


def department_scorecards(tickets: Sequence, now: Optional[datetime] = None) -> List[Dict]:
    now = now or utcnow()
    partitions = defaultdict(list)
    for ticket in tickets:
        partitions[department_of(ticket)].append(ticket)

    cards = []
    for department, members in partitions.items():
        resolved = sum(1 for t in members if _is_resolved(t))
        compliance = sla_compliance(members, now)
        cards.append({
            "department": department,
            "name": DEPARTMENTS.get(department, department.replace("_", " ").title()),
            "total_tickets": len(members),
            "resolved_tickets": resolved,
            "pending_tickets": len(members) - resolved,
            "avg_resolution_hours": average_resolution_hours(members),
            "sla_compliance": compliance,
            "grade": grade_for(compliance),
            "trend": trend_for(compliance),
        })
    cards.sort(key=lambda c: (-c["sla_compliance"], c["department"]))
    return cards


def compute_dashboard_stats(tickets: Sequence, now: Optional[datetime] = None, recent: int = 5) -> Dict:
    """
    Build the dashboard payload for ``tickets``, which callers pass newest-first
    so that ``recent_tickets`` is simply the head of the list.
    """
    now = now or utcnow()
    tickets = list(tickets)

    resolved = sum(1 for t in tickets if _is_resolved(t))
    by_category = Counter(_analysis(t).get("category") or "other" for t in tickets)
    by_urgency = Counter(_analysis(t).get("urgency") or "medium" for t in tickets)
    by_status = Counter(t.status for t in tickets)

    return {
        "total_tickets": len(tickets),
        "resolved_tickets": resolved,
        "pending_tickets": len(tickets) - resolved,
        "avg_resolution_time": average_resolution_hours(tickets),
        "sla_compliance": sla_compliance(tickets, now),
        "tickets_by_category": dict(by_category),
        "tickets_by_urgency": dict(by_urgency),
        "tickets_by_status": dict(by_status),
        "recent_tickets": tickets[:recent],
        "departments": department_scorecards(tickets, now),
    }


def category_trends(tickets: Iterable, now: Optional[datetime] = None) -> List[Dict]:
    """Week-over-week ticket counts per category."""
    now = now or utcnow()
    week_ago = now - TREND_WINDOW
    two_weeks_ago = now - 2 * TREND_WINDOW

    last_week = Counter()
    previous_week = Counter()
    for t in tickets:
        category = _analysis(t).get("category")
        if not category or t.created_at is None:
            continue
        if t.created_at >= week_ago:
            last_week[category] += 1
        elif t.created_at >= two_weeks_ago:
            previous_week[category] += 1

    trends = []
    for category in sorted(set(last_week) | set(previous_week)):
        change = last_week[category] - previous_week[category]
        if change > TREND_THRESHOLD:
            direction = "increasing"
        elif change < -TREND_THRESHOLD:
            direction = "decreasing"
        else:
            direction = "stable"
        trends.append({
            "category": category,
            "last_week": last_week[category],
            "previous_week": previous_week[category],
            "change": change,
            "trend": direction,
        })
    return trends

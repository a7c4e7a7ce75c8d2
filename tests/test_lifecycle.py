import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from grievance.core import accounts
from grievance.core.classifier import FallbackClassifier
from grievance.core.errors import NotFoundError, PersistenceError, ValidationError
from grievance.core.lifecycle import TicketLifecycle
from grievance.models.ticket import Counter, Ticket, TICKET_COUNTER
from grievance.schemas.ticket import Location

from conftest import FailingClassifier, FakeClock, StubClassifier

CODE_PATTERN = re.compile(r"^GRV-(\d{4})-(\d{5})$")


def _sequence(code):
    return int(CODE_PATTERN.match(code).group(2))


def test_wifi_grievance_end_to_end(lifecycle, stub_classifier, clock, student):
    ticket, classification = lifecycle.create_ticket(
        "WiFi down for 3 days in library",
        student.user_id,
        location=Location(type="library", block="A", floor="2"),
    )

    assert classification.category == "it"
    assert ticket.ticket_code == "GRV-2026-00001"
    assert ticket.status == "open"
    assert ticket.priority == 1
    assert ticket.assigned_department == "it"
    assert ticket.created_at == clock.now
    assert ticket.expected_resolution_date == ticket.created_at + timedelta(hours=24)
    assert ticket.classification["urgency"] == "high"
    assert ticket.location == {"type": "library", "block": "A", "floor": "2", "room": None}

    text, location, timestamp = stub_classifier.calls[0]
    assert text == "WiFi down for 3 days in library"
    assert location == "library, Block A, Floor 2"
    assert timestamp == clock.now.isoformat()

    history = lifecycle.get_history(ticket.ticket_code)
    assert len(history) == 1
    assert history[0].new_status == "open"
    assert history[0].is_automatic is True


def test_classifier_failure_falls_back(db_session, clock, student):
    lifecycle = TicketLifecycle(db_session, FailingClassifier(TimeoutError("no answer")), clock=clock)
    text = "Mess food has been cold every evening this week and the staff ignore complaints " * 2

    ticket, classification = lifecycle.create_ticket(text, student.user_id)

    assert CODE_PATTERN.match(ticket.ticket_code)
    assert classification.category == "general"
    assert classification.department == "admin"
    assert classification.urgency == "medium"
    assert classification.confidence == 0.3
    assert classification.summary == text[:100]
    assert classification.keywords == []
    assert ticket.priority == 2
    assert ticket.expected_resolution_date == clock.now + timedelta(hours=72)


@pytest.mark.parametrize("text", ["", "   \n"])
def test_empty_text_is_rejected(lifecycle, student, text):
    with pytest.raises(ValidationError):
        lifecycle.create_ticket(text, student.user_id)


def test_unknown_submitter_is_rejected(lifecycle, stub_classifier):
    with pytest.raises(ValidationError):
        lifecycle.create_ticket("Broken chair in lab", "user_nobody")
    assert stub_classifier.calls == []


def test_anonymous_ticket_keeps_identity_but_hides_name(lifecycle, student):
    ticket, _ = lifecycle.create_ticket("Harassment near the east gate at night", student.user_id, is_anonymous=True)

    assert ticket.student_name == "Anonymous"
    assert ticket.student_id == student.user_id
    assert ticket.student_email == student.email
    assert ticket.is_anonymous is True


def test_codes_are_monotonic_across_years(db_session, stub_classifier, student):
    clock = FakeClock(datetime(2025, 12, 31, 23, 59))
    lifecycle = TicketLifecycle(db_session, stub_classifier, clock=clock)

    first, _ = lifecycle.create_ticket("Heater broken", student.user_id)
    clock.advance(minutes=2)
    second, _ = lifecycle.create_ticket("Heater still broken", student.user_id)

    assert first.ticket_code == "GRV-2025-00001"
    assert second.ticket_code == "GRV-2026-00002"


def test_concurrent_creates_get_distinct_codes(session_factory, student):
    def submit(i):
        db = session_factory()
        try:
            ticket, _ = TicketLifecycle(db, FallbackClassifier()).create_ticket(f"Complaint number {i}", student.user_id)
            return ticket.ticket_code
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        codes = list(pool.map(submit, range(24)))

    assert len(set(codes)) == 24
    assert sorted(_sequence(c) for c in codes) == list(range(1, 25))


def test_failed_write_leaves_no_partial_ticket(db_session, lifecycle, student, monkeypatch):
    lifecycle.create_ticket("First ticket", student.user_id)

    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", broken_commit)
    with pytest.raises(PersistenceError):
        lifecycle.create_ticket("Second ticket", student.user_id)
    monkeypatch.undo()

    assert db_session.execute(select(Counter.value).where(Counter.name == TICKET_COUNTER)).scalar_one() == 1
    assert db_session.query(Ticket).count() == 1

    ticket, _ = lifecycle.create_ticket("Third ticket", student.user_id)
    assert ticket.ticket_code.endswith("-00002")


def test_list_tickets_newest_first_and_scoped(db_session, lifecycle, clock, student):
    other = accounts.signup(db_session, "ben@campus.edu", "another-pass", "Ben Okafor")
    for i in range(3):
        lifecycle.create_ticket(f"Asha ticket {i}", student.user_id)
        clock.advance(minutes=10)
    lifecycle.create_ticket("Ben ticket", other.user_id)

    everything = lifecycle.list_tickets()
    assert [t.original_text for t in everything] == ["Ben ticket", "Asha ticket 2", "Asha ticket 1", "Asha ticket 0"]

    mine = lifecycle.list_tickets(user_id=student.user_id, limit=2)
    assert [t.original_text for t in mine] == ["Asha ticket 2", "Asha ticket 1"]


def test_get_unknown_ticket(lifecycle):
    with pytest.raises(NotFoundError):
        lifecycle.get_ticket("GRV-2026-99999")
    with pytest.raises(NotFoundError):
        lifecycle.update_status("GRV-2026-99999", "assigned", "admin-1")


def test_assign_moves_open_ticket_to_assigned(lifecycle, student):
    ticket, _ = lifecycle.create_ticket("Bus 4 skipped the hostel stop", student.user_id)

    assigned = lifecycle.assign_ticket(ticket.ticket_code, "transport-officer", "admin-1")

    assert assigned.assigned_to == "transport-officer"
    assert assigned.status == "assigned"
    assert lifecycle.get_history(ticket.ticket_code)[-1].notes == "Assigned to transport-officer"


def test_reassign_does_not_touch_status(lifecycle, student):
    ticket, _ = lifecycle.create_ticket("Bus 4 skipped the hostel stop", student.user_id)
    lifecycle.assign_ticket(ticket.ticket_code, "officer-a", "admin-1")
    lifecycle.update_status(ticket.ticket_code, "in_progress", "officer-a")

    reassigned = lifecycle.assign_ticket(ticket.ticket_code, "officer-b", "admin-1")

    assert reassigned.status == "in_progress"
    assert reassigned.assigned_to == "officer-b"


def test_override_urgency_recomputes_priority_and_deadline(lifecycle, clock, student):
    ticket, _ = lifecycle.create_ticket("Water tank overflowing", student.user_id)
    created_at = ticket.created_at
    clock.advance(hours=1)

    updated = lifecycle.override_classification(ticket.ticket_code, "admin-1", urgency="critical", department="hostel")

    assert updated.priority == 0
    assert updated.expected_resolution_date == created_at + timedelta(hours=4)
    assert updated.assigned_department == "hostel"
    assert updated.classification["urgency"] == "critical"
    assert updated.classification["department"] == "hostel"
    assert updated.updated_at == clock.now


def test_override_rejects_unknown_urgency(lifecycle, student):
    ticket, _ = lifecycle.create_ticket("Water tank overflowing", student.user_id)

    with pytest.raises(ValidationError):
        lifecycle.override_classification(ticket.ticket_code, "admin-1", urgency="apocalyptic")

    unchanged = lifecycle.get_ticket(ticket.ticket_code)
    assert unchanged.priority == 1
    assert unchanged.classification["urgency"] == "high"


def test_mark_duplicate_links_both_tickets(lifecycle, student):
    original, _ = lifecycle.create_ticket("Gym treadmill broken", student.user_id)
    repeat, _ = lifecycle.create_ticket("Treadmill in gym not working", student.user_id)

    marked = lifecycle.mark_duplicate(repeat.ticket_code, original.ticket_code, "admin-1")

    assert marked.is_duplicate is True
    assert marked.duplicate_of == original.ticket_code
    assert marked.related_tickets == [original.ticket_code]
    assert lifecycle.get_ticket(original.ticket_code).related_tickets == [repeat.ticket_code]

    with pytest.raises(ValidationError):
        lifecycle.mark_duplicate(repeat.ticket_code, repeat.ticket_code, "admin-1")


def test_find_similar(lifecycle, student):
    lifecycle.create_ticket("The library wifi keeps dropping every evening during exams", student.user_id)
    lifecycle.create_ticket("Canteen serves cold food", student.user_id)

    matches = lifecycle.find_similar("wifi in the library dropping again this evening")

    assert [m.original_text for m in matches] == ["The library wifi keeps dropping every evening during exams"]
    assert lifecycle.find_similar("wifi library") == []


def test_escalate_overdue_only_moves_eligible_tickets(db_session, clock, student):
    lifecycle = TicketLifecycle(db_session, StubClassifier(urgency="critical"), clock=clock)
    working, _ = lifecycle.create_ticket("Gas smell in chemistry lab", student.user_id)
    fresh, _ = lifecycle.create_ticket("Another gas smell report", student.user_id)
    lifecycle.update_status(working.ticket_code, "assigned", "admin-1")
    lifecycle.update_status(working.ticket_code, "in_progress", "admin-1")

    clock.advance(hours=5)
    escalated = lifecycle.escalate_overdue()

    assert escalated == [working.ticket_code]
    assert lifecycle.get_ticket(working.ticket_code).status == "escalated"
    # open -> escalated is not an edge of the graph
    assert lifecycle.get_ticket(fresh.ticket_code).status == "open"
    last = lifecycle.get_history(working.ticket_code)[-1]
    assert last.is_automatic is True
    assert last.changed_by == "system"

    assert lifecycle.escalate_overdue() == []


def test_all_tickets_is_not_capped(lifecycle, student, monkeypatch):
    from grievance.core.config import settings

    monkeypatch.setattr(settings, "USER_LIST_LIMIT", 3)
    monkeypatch.setattr(settings, "ADMIN_LIST_LIMIT", 4)
    for i in range(6):
        lifecycle.create_ticket(f"Dorm complaint {i}", student.user_id)

    assert len(lifecycle.list_tickets(user_id=student.user_id)) == 3
    assert len(lifecycle.list_tickets()) == 4
    everything = lifecycle.all_tickets()
    assert len(everything) == 6
    assert everything[0].original_text == "Dorm complaint 5"
    assert len(lifecycle.all_tickets(user_id=student.user_id)) == 6
    assert lifecycle.all_tickets(user_id="user_nobody") == []

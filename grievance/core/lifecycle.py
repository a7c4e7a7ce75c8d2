"""
Ticket lifecycle engine: intake, status changes, assignment and admin
corrections. Every public mutation is one transaction on the session it was
given; on a store failure the session is rolled back and PersistenceError is
raised, so no partial ticket or orphaned counter increment survives.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError as SchemaError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from grievance.core.classifier import Classifier, fallback_classification
from grievance.core.clock import utcnow
from grievance.core.config import settings
from grievance.core.counter import next_value, format_ticket_code
from grievance.core.duplicates import find_similar
from grievance.core.errors import NotFoundError, PersistenceError, ValidationError
from grievance.core.fsm import TicketStateMachine, TicketStatus, is_allowed
from grievance.core.sla import compute_deadline, priority_for, ticket_escalation_level, EscalationLevel
from grievance.models.ticket import Ticket, StatusHistory, TICKET_COUNTER
from grievance.models.user import User
from grievance.schemas.classification import Classification
from grievance.schemas.ticket import Location

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"
SYSTEM_ACTOR = "system"


class TicketLifecycle:
    def __init__(
        self,
        db: Session,
        classifier: Classifier,
        clock: Callable[[], datetime] = utcnow,
        enforce_graph: Optional[bool] = None,
    ):
        self.db = db
        self.classifier = classifier
        self.clock = clock
        if enforce_graph is None:
            enforce_graph = settings.ENFORCE_STATUS_GRAPH
        self.fsm = TicketStateMachine(db, enforce_graph=enforce_graph, clock=clock)

    # intake

    def classify(self, text: str, location: str, timestamp: str) -> Classification:
        """Ask the collaborator; any failure at all yields the fallback classification."""
        try:
            return self.classifier.classify(text, location, timestamp)
        except Exception as e:
            logger.warning("Classification failed, using fallback: %s", e)
            return fallback_classification(text)

    def create_ticket(
        self,
        text: str,
        submitter_id: str,
        location: Optional[Location] = None,
        is_anonymous: bool = False,
    ) -> Tuple[Ticket, Classification]:
        if not text or not text.strip():
            raise ValidationError("Grievance text must not be empty")

        submitter = self.db.execute(
            select(User).where(User.user_id == submitter_id)
        ).scalar_one_or_none()
        if submitter is None or not submitter.is_active:
            raise ValidationError(f"Unknown submitter {submitter_id!r}")

        # The network call happens before the write transaction opens.
        now = self.clock()
        classification = self.classify(text, location.describe() if location else "", now.isoformat())

        location_blob = location.model_dump() if location else {"type": classification.category}
        try:
            sequence = next_value(self.db, TICKET_COUNTER)
            ticket = Ticket(
                ticket_code=format_ticket_code(sequence, now),
                student_id=submitter.user_id,
                student_email=submitter.email,
                student_name=ANONYMOUS_NAME if is_anonymous else submitter.display_name,
                original_text=text,
                classification=classification.model_dump(),
                location=location_blob,
                status=TicketStatus.OPEN,
                assigned_department=classification.department,
                priority=priority_for(classification.urgency),
                created_at=now,
                updated_at=now,
                expected_resolution_date=compute_deadline(classification.urgency, now),
                related_tickets=[],
                attachments=[],
                is_anonymous=is_anonymous,
            )
            self.db.add(ticket)
            self.db.add(StatusHistory(
                ticket_code=ticket.ticket_code,
                previous_status=None,
                new_status=TicketStatus.OPEN,
                changed_by=SYSTEM_ACTOR,
                changed_at=now,
                notes="Ticket created",
                is_automatic=True,
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Could not store new ticket for %s: %s", submitter_id, e)
            raise PersistenceError("Could not store the ticket") from e

        self.db.refresh(ticket)
        logger.info(
            "Created %s (%s/%s, urgency=%s)",
            ticket.ticket_code, classification.category, classification.department, classification.urgency,
        )
        return ticket, classification

    def acknowledgement(self, ticket: Ticket, classification: Classification) -> str:
        name = "Student" if ticket.is_anonymous else ticket.student_name
        try:
            return self.classifier.acknowledge(ticket.ticket_code, name, ticket.original_text, classification)
        except Exception as e:
            logger.warning("Acknowledgement failed for %s: %s", ticket.ticket_code, e)
            return Classifier.acknowledge(self.classifier, ticket.ticket_code, name, ticket.original_text, classification)

    # reads

    def get_ticket(self, ticket_code: str) -> Ticket:
        ticket = self.db.execute(
            select(Ticket).where(Ticket.ticket_code == ticket_code)
        ).scalar_one_or_none()
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_code} not found")
        return ticket

    def _ticket_query(self, user_id: Optional[str] = None):
        query = select(Ticket)
        if user_id is not None:
            query = query.where(Ticket.student_id == user_id)
        return query.order_by(Ticket.created_at.desc(), Ticket.id.desc())

    def list_tickets(self, user_id: Optional[str] = None, limit: Optional[int] = None) -> List[Ticket]:
        """Newest first, capped for display. Without a user, this is the admin view."""
        if limit is None:
            limit = settings.USER_LIST_LIMIT if user_id is not None else settings.ADMIN_LIST_LIMIT
        return list(self.db.execute(self._ticket_query(user_id).limit(limit)).scalars())

    def all_tickets(self, user_id: Optional[str] = None) -> List[Ticket]:
        """Every ticket, or every ticket of one user, newest first. Used for aggregation."""
        return list(self.db.execute(self._ticket_query(user_id)).scalars())

    def get_history(self, ticket_code: str) -> List[StatusHistory]:
        self.get_ticket(ticket_code)
        return list(self.db.execute(
            select(StatusHistory)
            .where(StatusHistory.ticket_code == ticket_code)
            .order_by(StatusHistory.changed_at, StatusHistory.id)
        ).scalars())

    def find_similar(self, text: str, limit: int = 3) -> List[Ticket]:
        return find_similar(text, self.list_tickets(), limit=limit)

    # mutations

    def _commit(self, what: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Could not %s: %s", what, e)
            raise PersistenceError(f"Could not {what}") from e

    def update_status(
        self,
        ticket_code: str,
        new_status: str,
        actor_id: Optional[str],
        notes: Optional[str] = None,
        is_automatic: bool = False,
    ) -> Ticket:
        ticket = self.get_ticket(ticket_code)
        try:
            self.fsm.transition(ticket, new_status, actor_id, notes=notes, is_automatic=is_automatic)
        except ValidationError:
            self.db.rollback()
            raise
        self._commit(f"update status of {ticket_code}")
        self.db.refresh(ticket)
        return ticket

    def assign_ticket(self, ticket_code: str, assignee: str, actor_id: str) -> Ticket:
        ticket = self.get_ticket(ticket_code)
        ticket.assigned_to = assignee
        ticket.updated_at = self.clock()
        if ticket.status in (TicketStatus.OPEN, TicketStatus.REOPENED) and \
                is_allowed(ticket.status, TicketStatus.ASSIGNED, self.fsm.enforce_graph):
            self.fsm.transition(ticket, TicketStatus.ASSIGNED, actor_id, notes=f"Assigned to {assignee}")
        self._commit(f"assign {ticket_code}")
        self.db.refresh(ticket)
        return ticket

    def override_classification(
        self,
        ticket_code: str,
        actor_id: str,
        urgency: Optional[str] = None,
        department: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Ticket:
        """
        Apply an admin correction to the AI result. A new urgency recomputes the
        priority and the deadline from the original creation time.
        """
        ticket = self.get_ticket(ticket_code)
        analysis = dict(ticket.classification or fallback_classification(ticket.original_text).model_dump())

        if urgency is not None:
            analysis["urgency"] = urgency
        if department is not None:
            analysis["department"] = department
        if category is not None:
            analysis["category"] = category
        try:
            corrected = Classification.model_validate(analysis)
        except SchemaError as e:
            raise ValidationError(f"Invalid classification override: {e.errors()[0]['msg']}") from e

        ticket.classification = corrected.model_dump()
        if urgency is not None:
            ticket.priority = priority_for(corrected.urgency)
            ticket.expected_resolution_date = compute_deadline(corrected.urgency, ticket.created_at)
        if department is not None:
            ticket.assigned_department = corrected.department
        ticket.updated_at = self.clock()
        self._commit(f"override classification of {ticket_code}")
        logger.info("Classification of %s overridden by %s", ticket_code, actor_id)
        self.db.refresh(ticket)
        return ticket

    def mark_duplicate(self, ticket_code: str, duplicate_of: str, actor_id: str) -> Ticket:
        if ticket_code == duplicate_of:
            raise ValidationError("A ticket cannot duplicate itself")
        ticket = self.get_ticket(ticket_code)
        original = self.get_ticket(duplicate_of)

        ticket.is_duplicate = True
        ticket.duplicate_of = original.ticket_code
        # JSON columns need a new list to register the change.
        if original.ticket_code not in (ticket.related_tickets or []):
            ticket.related_tickets = list(ticket.related_tickets or []) + [original.ticket_code]
        if ticket.ticket_code not in (original.related_tickets or []):
            original.related_tickets = list(original.related_tickets or []) + [ticket.ticket_code]
        ticket.updated_at = self.clock()

        self._commit(f"mark {ticket_code} as duplicate")
        logger.info("%s marked as duplicate of %s by %s", ticket_code, duplicate_of, actor_id)
        self.db.refresh(ticket)
        return ticket

    def escalate_overdue(self, actor_id: str = SYSTEM_ACTOR) -> List[str]:
        """
        Move every overdue ticket that may legally enter "escalated" into it.
        Runs only when called; nothing schedules it.
        """
        now = self.clock()
        candidates = self.db.execute(
            select(Ticket).where(
                Ticket.expected_resolution_date.is_not(None),
                Ticket.expected_resolution_date < now,
                Ticket.status != TicketStatus.ESCALATED,
            )
        ).scalars().all()

        escalated = []
        for ticket in candidates:
            if ticket_escalation_level(ticket, now) != EscalationLevel.ESCALATED:
                continue
            if not is_allowed(ticket.status, TicketStatus.ESCALATED, self.fsm.enforce_graph):
                continue
            self.fsm.transition(ticket, TicketStatus.ESCALATED, actor_id, notes="SLA breached", is_automatic=True)
            escalated.append(ticket.ticket_code)

        if escalated:
            self._commit("escalate overdue tickets")
        return escalated

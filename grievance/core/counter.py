from datetime import datetime
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from grievance.models.ticket import Counter, TICKET_COUNTER

def next_value(db: Session, name: str = TICKET_COUNTER) -> int:
    """
    Increment the named counter and return the new value, inside the caller's
    transaction. The UPDATE takes the write lock on the counter row, so
    concurrent creators are serialised until the caller commits or rolls back.
    Does NOT commit.
    """
    result = db.execute(
        update(Counter)
        .where(Counter.name == name)
        .values(value=Counter.value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # First use of this series.
        db.add(Counter(name=name, value=1))
        db.flush()
        return 1
    return db.execute(select(Counter.value).where(Counter.name == name)).scalar_one()

def format_ticket_code(sequence: int, when: datetime) -> str:
    return f"GRV-{when.year}-{sequence:05d}"

from sqlalchemy import create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from grievance.core.config import settings

engine_kwargs = {}
if settings.DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}

engine = create_engine(settings.DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=engine):
    """
    Create all tables and seed the ticket counter row.
    Safe to call repeatedly.
    """
    # Register the mapped classes on Base.metadata before create_all.
    from grievance.models.ticket import Counter, TICKET_COUNTER
    import grievance.models.user  # noqa: F401

    Base.metadata.create_all(bind=bind)

    Session = sessionmaker(bind=bind)
    with Session() as db:
        exists = db.execute(select(Counter).where(Counter.name == TICKET_COUNTER)).scalar_one_or_none()
        if exists is None:
            db.add(Counter(name=TICKET_COUNTER, value=0))
            db.commit()

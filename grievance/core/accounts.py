import logging
import secrets
import string
from datetime import datetime, timezone

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from grievance.core.clock import utcnow
from grievance.core.errors import NotFoundError, PersistenceError, ValidationError
from grievance.models.user import User

logger = logging.getLogger(__name__)

ROLES = ("student", "admin", "super_admin")
PROFILE_FIELDS = ("display_name", "department", "student_id", "hostel_block", "room_number", "phone_number")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_BASE36 = string.digits + string.ascii_lowercase


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_user_id() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(10))
    return f"user_{_base36(millis)}{suffix}"


def get_user(db: Session, user_id: str) -> User:
    user = db.execute(select(User).where(User.user_id == user_id)).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


def signup(db: Session, email: str, password: str, display_name: str, role: str = "student", **profile) -> User:
    email = email.strip().lower()
    if role not in ROLES:
        raise ValidationError(f"Unknown role {role!r}")
    if db.execute(select(User).where(User.email == email)).scalar_one_or_none() is not None:
        raise ValidationError("User already exists")

    now = utcnow()
    user = User(
        user_id=generate_user_id(),
        email=email,
        password_hash=pwd_context.hash(password),
        display_name=display_name,
        role=role,
        created_at=now,
        last_login_at=now,
        is_active=True,
        **{k: v for k, v in profile.items() if k in PROFILE_FIELDS},
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent signup for the same address.
        db.rollback()
        raise ValidationError("User already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Could not create user") from e
    db.refresh(user)
    logger.info("Signed up %s as %s", user.user_id, role)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    if not user.is_active or not pwd_context.verify(password, user.password_hash):
        raise ValidationError("Invalid password")

    user.last_login_at = utcnow()
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Could not record login") from e
    db.refresh(user)
    return user


def update_profile(db: Session, user_id: str, **changes) -> User:
    user = get_user(db, user_id)
    unknown = set(changes) - set(PROFILE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot edit {', '.join(sorted(unknown))}")
    for field, value in changes.items():
        setattr(user, field, value)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Could not update profile") from e
    db.refresh(user)
    return user

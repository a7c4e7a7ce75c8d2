from sqlalchemy import Column, Integer, String, DateTime, Boolean
from grievance.core.clock import utcnow
from grievance.core.db import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="student")

    department = Column(String(100), nullable=True)
    student_id = Column(String(64), nullable=True)
    hostel_block = Column(String(50), nullable=True)
    room_number = Column(String(50), nullable=True)
    phone_number = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    last_login_at = Column(DateTime, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

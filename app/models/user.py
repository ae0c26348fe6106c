# app/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from app.database import Base

ROLE_SUPER_ADMIN = "super-admin"
ROLE_DIRECTOR = "director"
ROLE_CLINICIAN = "clinician"
ROLES = (ROLE_SUPER_ADMIN, ROLE_DIRECTOR, ROLE_CLINICIAN)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_CLINICIAN, server_default=ROLE_CLINICIAN)
    position_id = Column(Integer, ForeignKey("positions.id", ondelete="SET NULL"), nullable=True)
    department = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    accepted = Column(Boolean, default=False, nullable=False)  # False = waiting for super-admin approval

    # Clinicians only: the director who reviews them. NULL = unassigned.
    director_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

# app/models/position.py
from sqlalchemy import Column, Integer, String, DateTime, func
from app.database import Base

class Position(Base):
    """Clinician type / job position, e.g. "Physical Therapist"."""
    __tablename__ = "positions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

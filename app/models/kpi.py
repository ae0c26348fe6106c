# app/models/kpi.py
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, func
from app.database import Base

class Kpi(Base):
    __tablename__ = "kpis"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    weight = Column(Integer, nullable=False)       # 1–100
    is_removed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

# app/models/review.py
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from app.database import Base

PERIOD_MONTHLY = "monthly"
PERIOD_WEEKLY = "weekly"

class ReviewItem(Base):
    __tablename__ = "review_items"

    id = Column(Integer, primary_key=True, index=True)
    clinician_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kpi_id = Column(Integer, ForeignKey("kpis.id"), nullable=False)
    director_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # Who reviewed

    met_check = Column(Boolean, nullable=False)
    notes = Column(Text, nullable=True)   # required when not met
    plan = Column(Text, nullable=True)    # required when not met
    score = Column(Integer, nullable=False, default=0)  # KPI weight if met, else 0
    file_url = Column(String, nullable=True)

    # Date the review pertains to; bucketed in settings.REPORTING_TIMEZONE
    date = Column(DateTime(timezone=True), nullable=False)
    period_type = Column(String, nullable=False)     # "monthly" or "weekly"
    period_year = Column(Integer, nullable=False)
    period_number = Column(Integer, nullable=False)  # month 1–12 or week 1–53

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "clinician_id", "kpi_id", "period_type", "period_year", "period_number",
            name="uq_review_clinician_kpi_period",
        ),
    )

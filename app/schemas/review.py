from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import List, Literal, Optional
from .performance import PeriodInfo, PeriodScoreResponse

class ReviewItemIn(BaseModel):
    kpi_id: int
    met: Optional[bool] = None  # None = not reviewed, skipped on submit
    notes: Optional[str] = None
    plan: Optional[str] = None
    file_url: Optional[str] = None

    @model_validator(mode="after")
    def require_notes_when_not_met(self):
        if self.met is False:
            if not (self.notes or "").strip():
                raise ValueError("Performance notes are required when KPI is not met")
            if not (self.plan or "").strip():
                raise ValueError("Improvement plan is required when KPI is not met")
        return self

class ReviewSubmit(BaseModel):
    period_type: Literal["monthly", "weekly"] = "monthly"
    year: int = Field(..., ge=1900, le=2100)
    number: int = Field(..., ge=1, le=53)
    review_date: Optional[datetime] = None  # defaults to now, or period start for past periods
    items: List[ReviewItemIn] = Field(..., min_length=1)

class ReviewItemResponse(BaseModel):
    id: int
    clinician_id: int
    kpi_id: int
    director_id: Optional[int]
    met_check: bool
    notes: Optional[str]
    plan: Optional[str]
    score: int
    file_url: Optional[str]
    date: datetime
    period_type: str
    period_year: int
    period_number: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}

class PeriodReviewsResponse(BaseModel):
    clinician_id: int
    period: PeriodInfo
    reviews: List[ReviewItemResponse]
    score: PeriodScoreResponse

from pydantic import BaseModel
from datetime import datetime
from typing import Dict, List, Optional

class PeriodInfo(BaseModel):
    period_type: str  # "monthly" or "weekly"
    year: int
    number: int       # month 1–12 or week 1–53
    label: str
    start: datetime
    end: datetime     # exclusive

class PeriodScoreResponse(BaseModel):
    user_id: int
    period: PeriodInfo
    score: int
    band: str
    total_weight: float
    earned_weight: float
    reviewed_count: int
    has_data: bool  # False = 0% because nothing was reviewed, not because everything failed

class TrendPoint(BaseModel):
    year: int
    month: int
    label: str
    score: int
    has_data: bool

class TrendResponse(BaseModel):
    user_id: int
    points: List[TrendPoint]
    direction: str  # "up", "down", "stable"
    magnitude_delta: int

class KpiStatItem(BaseModel):
    kpi_id: int
    title: str
    weight: int
    is_removed: bool
    met: int
    total: int
    percentage: int  # met / total, unweighted

class KpiPerformanceResponse(BaseModel):
    user_id: int
    period: Optional[PeriodInfo] = None  # None = all time
    kpis: List[KpiStatItem]

class ClinicianScoreItem(BaseModel):
    id: int
    name: Optional[str]
    score: int
    band: str
    has_data: bool

class DirectorRollupResponse(BaseModel):
    director_id: int
    period: PeriodInfo
    score: int
    assignee_count: int
    clinicians: List[ClinicianScoreItem]

class AnalyticsRow(BaseModel):
    user_id: int
    name: Optional[str]
    scores: Dict[str, int]  # "2024-01" -> score

class AnalyticsResponse(BaseModel):
    year: int
    months: List[str]
    rows: List[AnalyticsRow]

class DashboardResponse(BaseModel):
    role: str
    period: PeriodInfo
    own_score: Optional[PeriodScoreResponse] = None
    trend: Optional[TrendResponse] = None
    kpis: List[KpiStatItem] = []
    clinician_count: int = 0
    average_score: int = 0
    needs_attention: List[ClinicianScoreItem] = []
    top_performers: List[ClinicianScoreItem] = []

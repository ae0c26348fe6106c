from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from sqlalchemy import select
from typing import List, Literal, Optional
from app.config import settings
from app.database import get_db
from app.core.auth import get_current_user, get_current_admin, can_view_user
from app.models.review import PERIOD_MONTHLY
from app.models.user import User, ROLE_SUPER_ADMIN, ROLE_DIRECTOR
from app.schemas.performance import (
    PeriodScoreResponse, TrendResponse, DirectorRollupResponse, AnalyticsResponse, AnalyticsRow,
    KpiPerformanceResponse,
)
from app.services.periods import make_period, resolve_period
from app.services.performance import (
    breakdown_to_dict, calculate_performance_score, calculate_scores, director_rollup_for_period,
    history_to_trend, kpi_performance, load_kpi_weights, score_history,
)
from app.services.scoring import MonthKey

router = APIRouter(prefix="/performance", tags=["performance"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(404, "User not found")
    return user


async def _period_score(db, user_id, period_type, year, number) -> PeriodScoreResponse:
    try:
        period = resolve_period(period_type, year, number, settings.reporting_tz)
    except ValueError as e:
        raise HTTPException(400, str(e))
    breakdown = await calculate_performance_score(db, user_id, period)
    return PeriodScoreResponse(**breakdown_to_dict(user_id, period, breakdown))


@router.get("/me", response_model=PeriodScoreResponse)
async def get_my_performance(
    period_type: Literal["monthly", "weekly"] = "monthly",
    year: Optional[int] = None,
    number: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await _period_score(db, current_user.id, period_type, year, number)


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    user_ids: List[int] = Query(...),
    year: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    """Month-by-month score matrix for the selected users."""
    tz = settings.reporting_tz
    if year is None:
        year = datetime.now(timezone.utc).astimezone(tz).year
    if year < 1900 or year > 2100:
        raise HTTPException(400, "Invalid year")

    result = await db.execute(select(User).where(User.id.in_(user_ids)).order_by(User.name))
    users = result.scalars().all()
    if not users:
        raise HTTPException(404, "No matching users")

    kpis = await load_kpi_weights(db)
    months = [f"{year}-{month:02d}" for month in range(1, 13)]
    scores_by_month = {}
    for month, label in enumerate(months, start=1):
        period = make_period(PERIOD_MONTHLY, year, month, tz)
        scores_by_month[label] = await calculate_scores(db, [u.id for u in users], period, kpis, tz)

    rows = [
        AnalyticsRow(
            user_id=user.id,
            name=user.name,
            scores={label: scores_by_month[label][user.id].percentage for label in months},
        )
        for user in users
    ]
    return AnalyticsResponse(year=year, months=months, rows=rows)


@router.get("/directors/{director_id}/rollup", response_model=DirectorRollupResponse)
async def get_director_rollup(
    director_id: int,
    period_type: Literal["monthly", "weekly"] = "monthly",
    year: Optional[int] = None,
    number: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    director = await _get_user_or_404(db, director_id)
    if director.role != ROLE_DIRECTOR:
        raise HTTPException(400, "User is not a director")
    if current_user.role != ROLE_SUPER_ADMIN and current_user.id != director_id:
        raise HTTPException(403, "Access denied")

    try:
        period = resolve_period(period_type, year, number, settings.reporting_tz)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return await director_rollup_for_period(db, director_id, period)


@router.get("/{user_id}", response_model=PeriodScoreResponse)
async def get_user_performance(
    user_id: int,
    period_type: Literal["monthly", "weekly"] = "monthly",
    year: Optional[int] = None,
    number: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    user = await _get_user_or_404(db, user_id)
    if not can_view_user(current_user, user):
        raise HTTPException(403, "Access denied")
    return await _period_score(db, user.id, period_type, year, number)


@router.get("/{user_id}/trend", response_model=TrendResponse)
async def get_user_trend(
    user_id: int,
    months: Optional[int] = Query(None, ge=1, le=36),
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Monthly scores ending at year/month (default: current month), oldest first."""
    user = await _get_user_or_404(db, user_id)
    if not can_view_user(current_user, user):
        raise HTTPException(403, "Access denied")

    try:
        end = resolve_period(PERIOD_MONTHLY, year, month, settings.reporting_tz)
    except ValueError as e:
        raise HTTPException(400, str(e))

    history = await score_history(db, user.id, MonthKey(end.year, end.number), months or settings.TREND_MONTHS)
    return history_to_trend(user.id, history)


@router.get("/{user_id}/kpis", response_model=KpiPerformanceResponse)
async def get_user_kpi_performance(
    user_id: int,
    period_type: Literal["monthly", "weekly"] = "monthly",
    year: Optional[int] = None,
    number: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Met rate per KPI. Without year/number this covers every filed review."""
    user = await _get_user_or_404(db, user_id)
    if not can_view_user(current_user, user):
        raise HTTPException(403, "Access denied")

    period = None
    if year is not None or number is not None:
        try:
            period = resolve_period(period_type, year, number, settings.reporting_tz)
        except ValueError as e:
            raise HTTPException(400, str(e))

    stats = await kpi_performance(db, user.id, period_type, period, tz=settings.reporting_tz)
    return KpiPerformanceResponse(
        user_id=user.id,
        period=period.as_dict() if period else None,
        kpis=stats,
    )

from fractions import Fraction
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Literal
from app.config import settings
from app.database import get_db
from app.core.auth import get_current_user
from app.models.review import PERIOD_MONTHLY
from app.models.user import User, ROLE_CLINICIAN, ROLE_DIRECTOR, ROLE_SUPER_ADMIN
from app.schemas.performance import DashboardResponse
from app.services.periods import current_period
from app.services.performance import (
    breakdown_to_dict, calculate_scores, clinician_items, get_assigned_clinicians,
    history_to_trend, kpi_performance, load_kpi_weights, score_history,
)
from app.services.scoring import MonthKey, round_half_up

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def summarise_clinicians(items: list) -> dict:
    """Counts and highlight lists for a set of clinician score items."""
    scored = [item for item in items if item["has_data"]]
    average = round_half_up(Fraction(sum(i["score"] for i in items), len(items))) if items else 0
    return {
        "clinician_count": len(items),
        "average_score": average,
        # no-data zeros are left out of "needs attention"
        "needs_attention": sorted(
            (i for i in scored if i["score"] < settings.ATTENTION_THRESHOLD),
            key=lambda i: i["score"],
        ),
        "top_performers": sorted(
            (i for i in scored if i["score"] >= settings.TOP_PERFORMER_THRESHOLD),
            key=lambda i: -i["score"],
        ),
    }


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    period_type: Literal["monthly", "weekly"] = "monthly",
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    tz = settings.reporting_tz
    period = current_period(period_type, tz)
    kpis = await load_kpi_weights(db)

    if current_user.role == ROLE_CLINICIAN:
        scores = await calculate_scores(db, [current_user.id], period, kpis, tz)
        month = current_period(PERIOD_MONTHLY, tz)
        history = await score_history(
            db, current_user.id, MonthKey(month.year, month.number), settings.TREND_MONTHS, kpis, tz
        )
        return DashboardResponse(
            role=current_user.role,
            period=period.as_dict(),
            own_score=breakdown_to_dict(current_user.id, period, scores[current_user.id]),
            trend=history_to_trend(current_user.id, history),
            kpis=await kpi_performance(db, current_user.id, PERIOD_MONTHLY, tz=tz),
        )

    if current_user.role == ROLE_DIRECTOR:
        clinicians = await get_assigned_clinicians(db, current_user.id)
    elif current_user.role == ROLE_SUPER_ADMIN:
        result = await db.execute(
            select(User).where(User.role == ROLE_CLINICIAN).order_by(User.name)
        )
        clinicians = result.scalars().all()
    else:
        raise HTTPException(403, "Unknown role")

    scores = await calculate_scores(db, [c.id for c in clinicians], period, kpis, tz)
    return DashboardResponse(
        role=current_user.role,
        period=period.as_dict(),
        **summarise_clinicians(clinician_items(clinicians, scores)),
    )

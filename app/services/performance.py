import logging
from collections import defaultdict
from datetime import tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.kpi import Kpi
from app.models.review import ReviewItem, PERIOD_MONTHLY
from app.models.user import User, ROLE_CLINICIAN
from app.services.periods import Period, as_utc, make_period
from app.services.scoring import (
    KpiWeight, MonthKey, ReviewRecord, ScoreBreakdown, assignment_count,
    bucket_by_month, bucket_by_week, collapse_replacements, compute_breakdown,
    director_rollup, kpi_breakdown, previous_months, score_band, trend,
)

logger = logging.getLogger(__name__)


def to_record(item: ReviewItem) -> ReviewRecord:
    return ReviewRecord(
        subject_id=item.clinician_id,
        kpi_id=item.kpi_id,
        met=item.met_check,
        period_timestamp=as_utc(item.date),
        reviewer_id=item.director_id,
    )


def _bucket_for(period_type: str, tz: tzinfo):
    if period_type == PERIOD_MONTHLY:
        return lambda ts: bucket_by_month(ts, tz)
    return lambda ts: bucket_by_week(ts, tz)


async def load_kpi_weights(db: AsyncSession) -> List[KpiWeight]:
    """Every KPI, removed ones included so past reviews keep their weight."""
    result = await db.execute(select(Kpi))
    return [
        KpiWeight(id=kpi.id, weight=kpi.weight, active=not kpi.is_removed)
        for kpi in result.scalars()
    ]


async def get_period_reviews(
    db: AsyncSession, clinician_ids: Iterable[int], period_type: str, start, end
) -> List[ReviewItem]:
    ids = list(clinician_ids)
    if not ids:
        return []
    result = await db.execute(
        select(ReviewItem)
        .where(ReviewItem.clinician_id.in_(ids))
        .where(ReviewItem.period_type == period_type)
        .where(ReviewItem.date >= as_utc(start))
        .where(ReviewItem.date < as_utc(end))
        .order_by(ReviewItem.id)
    )
    return result.scalars().all()


def breakdown_to_dict(user_id: int, period: Period, breakdown: ScoreBreakdown) -> dict:
    return {
        "user_id": user_id,
        "period": period.as_dict(),
        "score": breakdown.percentage,
        "band": score_band(breakdown.percentage),
        "total_weight": breakdown.total_weight,
        "earned_weight": breakdown.earned_weight,
        "reviewed_count": breakdown.reviewed_count,
        "has_data": breakdown.has_data,
    }


async def calculate_scores(
    db: AsyncSession,
    clinician_ids: Iterable[int],
    period: Period,
    kpis: Optional[List[KpiWeight]] = None,
    tz: Optional[tzinfo] = None,
) -> Dict[int, ScoreBreakdown]:
    """One breakdown per clinician for `period`, from a single query."""
    ids = list(clinician_ids)
    tz = tz or settings.reporting_tz
    if kpis is None:
        kpis = await load_kpi_weights(db)

    items = await get_period_reviews(db, ids, period.period_type, period.start, period.end)
    records = collapse_replacements(
        (to_record(item) for item in items), _bucket_for(period.period_type, tz)
    )

    by_clinician = defaultdict(list)
    for record in records:
        by_clinician[record.subject_id].append(record)

    return {cid: compute_breakdown(by_clinician.get(cid, []), kpis) for cid in ids}


async def calculate_performance_score(
    db: AsyncSession, user_id: int, period: Period, kpis: Optional[List[KpiWeight]] = None
) -> ScoreBreakdown:
    scores = await calculate_scores(db, [user_id], period, kpis)
    return scores[user_id]


async def score_history(
    db: AsyncSession,
    user_id: int,
    end_key: MonthKey,
    months: int,
    kpis: Optional[List[KpiWeight]] = None,
    tz: Optional[tzinfo] = None,
) -> List[Tuple[Period, ScoreBreakdown]]:
    """Monthly breakdowns for the `months` months ending at `end_key`, oldest first."""
    tz = tz or settings.reporting_tz
    if kpis is None:
        kpis = await load_kpi_weights(db)

    periods = [make_period(PERIOD_MONTHLY, key.year, key.month, tz) for key in previous_months(end_key, months)]
    items = await get_period_reviews(db, [user_id], PERIOD_MONTHLY, periods[0].start, periods[-1].end)
    bucket = _bucket_for(PERIOD_MONTHLY, tz)

    by_month = defaultdict(list)
    for record in collapse_replacements((to_record(item) for item in items), bucket):
        by_month[bucket(record.period_timestamp)].append(record)

    return [(period, compute_breakdown(by_month.get(period.key, []), kpis)) for period in periods]


def history_to_trend(user_id: int, history: List[Tuple[Period, ScoreBreakdown]]) -> dict:
    scores = [breakdown.percentage for _, breakdown in history]
    direction, delta = trend(scores, dead_band=settings.TREND_DEAD_BAND)
    return {
        "user_id": user_id,
        "points": [
            {
                "year": period.year,
                "month": period.number,
                "label": period.label,
                "score": breakdown.percentage,
                "has_data": breakdown.has_data,
            }
            for period, breakdown in history
        ],
        "direction": direction.value,
        "magnitude_delta": delta,
    }


async def get_assignments(db: AsyncSession) -> Dict[int, Optional[int]]:
    """clinician id -> director id (None when unassigned)."""
    result = await db.execute(
        select(User.id, User.director_id).where(User.role == ROLE_CLINICIAN)
    )
    return {row.id: row.director_id for row in result.fetchall()}


async def get_assigned_clinicians(db: AsyncSession, director_id: int) -> List[User]:
    result = await db.execute(
        select(User)
        .where(User.role == ROLE_CLINICIAN)
        .where(User.director_id == director_id)
        .order_by(User.name)
    )
    return result.scalars().all()


def clinician_items(clinicians: List[User], scores: Dict[int, ScoreBreakdown]) -> List[dict]:
    return [
        {
            "id": c.id,
            "name": c.name,
            "score": scores[c.id].percentage,
            "band": score_band(scores[c.id].percentage),
            "has_data": scores[c.id].has_data,
        }
        for c in clinicians
    ]


async def director_rollup_for_period(db: AsyncSession, director_id: int, period: Period) -> dict:
    clinicians = await get_assigned_clinicians(db, director_id)
    assignments = await get_assignments(db)
    scores = await calculate_scores(db, [c.id for c in clinicians], period)

    subject_scores = {cid: breakdown.percentage for cid, breakdown in scores.items()}
    rollup = director_rollup(director_id, subject_scores, assignments)
    logger.debug("Director %s rollup for %s: %s over %s clinicians",
                 director_id, period.label, rollup, len(clinicians))

    return {
        "director_id": director_id,
        "period": period.as_dict(),
        "score": rollup,
        "assignee_count": assignment_count(director_id, assignments),
        "clinicians": clinician_items(clinicians, scores),
    }


async def kpi_performance(
    db: AsyncSession,
    user_id: int,
    period_type: str,
    period: Optional[Period] = None,
    tz: Optional[tzinfo] = None,
) -> List[dict]:
    """Per-KPI met counts for one user, over `period` or all time when None."""
    tz = tz or settings.reporting_tz
    result = await db.execute(select(Kpi).order_by(Kpi.weight.desc(), Kpi.title))
    kpi_rows = result.scalars().all()

    query = (
        select(ReviewItem)
        .where(ReviewItem.clinician_id == user_id)
        .where(ReviewItem.period_type == period_type)
    )
    if period is not None:
        query = query.where(ReviewItem.date >= as_utc(period.start)).where(ReviewItem.date < as_utc(period.end))
    items = (await db.execute(query.order_by(ReviewItem.id))).scalars().all()
    records = collapse_replacements((to_record(item) for item in items), _bucket_for(period_type, tz))

    titles = {kpi.id: kpi.title for kpi in kpi_rows}
    weights = [KpiWeight(id=kpi.id, weight=kpi.weight, active=not kpi.is_removed) for kpi in kpi_rows]
    return [
        {
            "kpi_id": stat.kpi_id,
            "title": titles[stat.kpi_id],
            "weight": stat.weight,
            "is_removed": not stat.active,
            "met": stat.met,
            "total": stat.total,
            "percentage": stat.percentage,
        }
        for stat in kpi_breakdown(records, weights)
    ]

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.kpi import Kpi
from app.models.review import ReviewItem
from app.schemas.review import ReviewItemIn
from app.services.periods import Period, as_utc

logger = logging.getLogger(__name__)


class ReviewSubmissionError(ValueError):
    """A submitted review cannot be filed (unknown/removed KPI, date outside period)."""


def default_review_date(period: Period, now: Optional[datetime] = None) -> datetime:
    """`now` while the period is open, otherwise the first instant of the period."""
    now = now or datetime.now(timezone.utc)
    if period.contains(now):
        return now
    return period.start


async def find_period_review(
    db: AsyncSession, clinician_id: int, kpi_id: int, period: Period
) -> Optional[ReviewItem]:
    result = await db.execute(
        select(ReviewItem)
        .where(ReviewItem.clinician_id == clinician_id)
        .where(ReviewItem.kpi_id == kpi_id)
        .where(ReviewItem.period_type == period.period_type)
        .where(ReviewItem.period_year == period.year)
        .where(ReviewItem.period_number == period.number)
    )
    return result.scalar_one_or_none()


async def replace_review_for_period(
    db: AsyncSession,
    clinician_id: int,
    kpi_id: int,
    weight: int,
    period: Period,
    item: ReviewItemIn,
    reviewer_id: Optional[int],
    review_date: datetime,
) -> ReviewItem:
    """Write the single authoritative review for (clinician, KPI, period). Does not commit."""
    values = {
        "director_id": reviewer_id,
        "met_check": item.met,
        "notes": None if item.met else item.notes,
        "plan": None if item.met else item.plan,
        "score": weight if item.met else 0,
        "file_url": item.file_url,
        "date": as_utc(review_date),
    }

    review = await find_period_review(db, clinician_id, kpi_id, period)
    if review is None:
        review = ReviewItem(
            clinician_id=clinician_id,
            kpi_id=kpi_id,
            period_type=period.period_type,
            period_year=period.year,
            period_number=period.number,
            **values,
        )
        db.add(review)
    else:
        for field, value in values.items():
            setattr(review, field, value)
        db.add(review)
    await db.flush()
    return review


async def _load_kpis(db: AsyncSession, kpi_ids) -> Dict[int, Kpi]:
    result = await db.execute(select(Kpi).where(Kpi.id.in_(list(kpi_ids))))
    return {kpi.id: kpi for kpi in result.scalars()}


async def submit_review(
    db: AsyncSession,
    clinician_id: int,
    reviewer_id: Optional[int],
    period: Period,
    items: List[ReviewItemIn],
    review_date: Optional[datetime] = None,
) -> List[ReviewItem]:
    """
    File a batch of KPI reviews for one clinician and period.

    Items left unset (met is None) are skipped. A later submission for the
    same KPI and period replaces the earlier one. If a concurrent writer
    inserts the same row first, the batch is retried once and overwrites it.
    """
    if review_date is None:
        review_date = default_review_date(period)
    elif not period.contains(as_utc(review_date)):
        raise ReviewSubmissionError(f"Review date is outside {period.label}")

    # last entry per KPI wins within one submission too
    answered = {item.kpi_id: item for item in items if item.met is not None}
    if not answered:
        return []

    kpis = await _load_kpis(db, answered.keys())
    for kpi_id in answered:
        kpi = kpis.get(kpi_id)
        if kpi is None:
            raise ReviewSubmissionError(f"KPI {kpi_id} not found")
        if kpi.is_removed:
            raise ReviewSubmissionError(f"KPI {kpi_id} has been removed and cannot be reviewed")
    weights = {kpi_id: kpi.weight for kpi_id, kpi in kpis.items()}

    for attempt in range(2):
        try:
            saved = [
                await replace_review_for_period(
                    db, clinician_id, kpi_id, weights[kpi_id], period, item, reviewer_id, review_date
                )
                for kpi_id, item in answered.items()
            ]
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if attempt:
                raise
            logger.warning(
                "Concurrent review write for clinician %s in %s; retrying as update",
                clinician_id, period.label,
            )
            continue
        for review in saved:
            await db.refresh(review)
        logger.info("Filed %s review(s) for clinician %s in %s", len(saved), clinician_id, period.label)
        return saved

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Literal, Optional
from app.config import settings
from app.database import get_db
from app.core.auth import get_current_user, get_current_reviewer, can_view_user, can_review_user
from app.models.review import ReviewItem
from app.models.user import User
from app.schemas.review import ReviewSubmit, ReviewItemResponse, PeriodReviewsResponse
from app.services.periods import Period, make_period, resolve_period
from app.services.performance import (
    breakdown_to_dict, get_period_reviews, load_kpi_weights, to_record,
)
from app.services.reviews import ReviewSubmissionError, submit_review
from app.services.scoring import compute_breakdown

router = APIRouter(prefix="/reviews", tags=["reviews"])


async def _get_subject_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(404, "User not found")
    return user


async def _period_reviews_response(db: AsyncSession, clinician_id: int, period: Period) -> PeriodReviewsResponse:
    items = await get_period_reviews(db, [clinician_id], period.period_type, period.start, period.end)
    kpis = await load_kpi_weights(db)
    breakdown = compute_breakdown([to_record(item) for item in items], kpis)
    return PeriodReviewsResponse(
        clinician_id=clinician_id,
        period=period.as_dict(),
        reviews=[ReviewItemResponse.model_validate(item) for item in items],
        score=breakdown_to_dict(clinician_id, period, breakdown),
    )


@router.post("/{clinician_id}", response_model=PeriodReviewsResponse)
async def submit_clinician_review(
    clinician_id: int,
    review_in: ReviewSubmit,
    db: AsyncSession = Depends(get_db),
    reviewer = Depends(get_current_reviewer)
):
    subject = await _get_subject_or_404(db, clinician_id)
    if not can_review_user(reviewer, subject):
        raise HTTPException(403, "You cannot review this user")

    try:
        period = make_period(review_in.period_type, review_in.year, review_in.number, settings.reporting_tz)
    except ValueError as e:
        raise HTTPException(400, str(e))

    reviewer_id = reviewer.id
    try:
        await submit_review(
            db,
            clinician_id=clinician_id,
            reviewer_id=reviewer_id,
            period=period,
            items=review_in.items,
            review_date=review_in.review_date,
        )
    except ReviewSubmissionError as e:
        raise HTTPException(400, str(e))

    return await _period_reviews_response(db, clinician_id, period)


@router.get("/{clinician_id}", response_model=PeriodReviewsResponse)
async def get_clinician_period_reviews(
    clinician_id: int,
    period_type: Literal["monthly", "weekly"] = "monthly",
    year: Optional[int] = None,
    number: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    subject = await _get_subject_or_404(db, clinician_id)
    if not can_view_user(current_user, subject):
        raise HTTPException(403, "Access denied")

    try:
        period = resolve_period(period_type, year, number, settings.reporting_tz)
    except ValueError as e:
        raise HTTPException(400, str(e))

    return await _period_reviews_response(db, clinician_id, period)


@router.get("/{clinician_id}/latest", response_model=List[ReviewItemResponse])
async def get_latest_reviews(
    clinician_id: int,
    period_type: Literal["monthly", "weekly"] = "monthly",
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Most recent review per KPI, used to prefill the next review form."""
    subject = await _get_subject_or_404(db, clinician_id)
    if not can_view_user(current_user, subject):
        raise HTTPException(403, "Access denied")

    result = await db.execute(
        select(ReviewItem)
        .where(ReviewItem.clinician_id == clinician_id)
        .where(ReviewItem.period_type == period_type)
        .order_by(ReviewItem.date.desc(), ReviewItem.id.desc())
    )
    latest = {}
    for item in result.scalars():
        latest.setdefault(item.kpi_id, item)
    return list(latest.values())


@router.delete("/item/{review_id}")
async def delete_review(
    review_id: int,
    db: AsyncSession = Depends(get_db),
    reviewer = Depends(get_current_reviewer)
):
    result = await db.execute(select(ReviewItem).where(ReviewItem.id == review_id))
    review = result.scalar_one_or_none()
    if not review:
        raise HTTPException(404, "Review not found")

    subject = await _get_subject_or_404(db, review.clinician_id)
    if not can_review_user(reviewer, subject):
        raise HTTPException(403, "You cannot modify this review")

    await db.delete(review)
    await db.commit()
    return {"message": "Review deleted"}

# app/services/scoring.py
"""
KPI score aggregation.

Everything here is pure: callers hand in already-fetched reviews, KPI weights,
assignments and the reporting time zone, and get plain values back.
"""
import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from numbers import Real
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

UTC = timezone.utc


class ScoringError(Exception):
    """Base class for aggregation faults."""


class MalformedKpiError(ScoringError):
    def __init__(self, kpi_id, weight):
        self.kpi_id = kpi_id
        self.weight = weight
        super().__init__(f"KPI {kpi_id!r} has an unusable weight: {weight!r}")


@dataclass(frozen=True)
class KpiWeight:
    id: Any
    weight: Any
    active: bool = True


@dataclass(frozen=True)
class ReviewRecord:
    subject_id: Any
    kpi_id: Any
    met: Optional[bool]  # None = not reviewed yet
    period_timestamp: datetime
    reviewer_id: Any = None


@dataclass(frozen=True)
class ScoreBreakdown:
    total_weight: float
    earned_weight: float
    reviewed_count: int
    percentage: int

    @property
    def has_data(self) -> bool:
        return self.total_weight > 0


@dataclass(frozen=True)
class KpiStat:
    kpi_id: Any
    weight: Any
    active: bool
    met: int
    total: int
    percentage: int


class MonthKey(NamedTuple):
    year: int
    month: int


class WeekKey(NamedTuple):
    year: int
    week: int


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class Trend(NamedTuple):
    direction: TrendDirection
    magnitude_delta: int


def round_half_up(value) -> int:
    """Round to the nearest integer, .5 always going up."""
    return math.floor(Fraction(value) + Fraction(1, 2))


def _usable_weight(weight) -> bool:
    if isinstance(weight, bool) or not isinstance(weight, (Real, Decimal)):
        return False
    if isinstance(weight, Decimal):
        # math.isfinite() raises on signalling NaN
        return weight.is_finite() and weight > 0
    return math.isfinite(weight) and weight > 0


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------

def compute_breakdown(reviews: Iterable[ReviewRecord], kpis: Iterable[KpiWeight]) -> ScoreBreakdown:
    kpi_table = {kpi.id: kpi for kpi in kpis}

    total = Fraction(0)
    earned = Fraction(0)
    counted = 0
    for review in reviews:
        if review.met is None:
            continue
        kpi = kpi_table.get(review.kpi_id)
        if kpi is None:
            logger.debug("Skipping review of unknown KPI %r", review.kpi_id)
            continue
        if not _usable_weight(kpi.weight):
            if kpi.active:
                raise MalformedKpiError(kpi.id, kpi.weight)
            logger.debug("Skipping review of removed KPI %r with weight %r", kpi.id, kpi.weight)
            continue

        weight = Fraction(kpi.weight)
        total += weight
        if review.met:
            earned += weight
        counted += 1

    if total == 0:
        percentage = 0
    else:
        percentage = round_half_up(earned * 100 / total)

    return ScoreBreakdown(
        total_weight=float(total),
        earned_weight=float(earned),
        reviewed_count=counted,
        percentage=percentage,
    )


def compute_score(reviews: Iterable[ReviewRecord], kpis: Iterable[KpiWeight]) -> int:
    """Weighted percentage (0-100) of KPI weight met in one subject's period."""
    return compute_breakdown(reviews, kpis).percentage


def score_band(score: int) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Good"
    if score >= 70:
        return "Average"
    return "Needs Improvement"


def kpi_breakdown(reviews: Iterable[ReviewRecord], kpis: Iterable[KpiWeight]) -> List[KpiStat]:
    """
    Met rate per KPI over `reviews`, in `kpis` order.

    Unweighted: each counted review is one met/not-met observation. Removed
    KPIs are listed only when they have reviews; unknown KPI ids are ignored.
    """
    met = Counter()
    total = Counter()
    for review in reviews:
        if review.met is None:
            continue
        total[review.kpi_id] += 1
        if review.met:
            met[review.kpi_id] += 1

    stats = []
    for kpi in kpis:
        count = total[kpi.id]
        if count == 0 and not kpi.active:
            continue
        percentage = round_half_up(Fraction(met[kpi.id] * 100, count)) if count else 0
        stats.append(KpiStat(kpi.id, kpi.weight, kpi.active, met[kpi.id], count, percentage))
    return stats


# ---------------------------------------------------------------------------
# Period bucketing
# ---------------------------------------------------------------------------

def _to_zone(timestamp: datetime, tz: Optional[tzinfo]) -> datetime:
    tz = tz or UTC
    if timestamp.tzinfo is None:
        # naive timestamps are taken as already in the reporting zone
        return timestamp
    return timestamp.astimezone(tz)


def bucket_by_month(timestamp: datetime, tz: Optional[tzinfo] = None) -> MonthKey:
    local = _to_zone(timestamp, tz)
    return MonthKey(local.year, local.month)


def week_start(year: int, week: int) -> date:
    """Monday that opens `week` of `year`. Week 1 opens on the first Monday on or after Jan 1."""
    jan1 = date(year, 1, 1)
    first_monday = jan1 + timedelta(days=(7 - jan1.weekday()) % 7)
    return first_monday + timedelta(weeks=week - 1)


def weeks_in_year(year: int) -> int:
    return (week_start(year + 1, 1) - week_start(year, 1)).days // 7


def bucket_by_week(timestamp: datetime, tz: Optional[tzinfo] = None) -> WeekKey:
    day = _to_zone(timestamp, tz).date()
    year = day.year
    first = week_start(year, 1)
    if day < first:
        # days before the first Monday close out the previous year's last week
        year -= 1
        first = week_start(year, 1)
    return WeekKey(year, (day - first).days // 7 + 1)


def month_bounds(key: MonthKey, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """[start, end) of a month in the reporting zone."""
    tz = tz or UTC
    year, month = key
    start = datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime(year, month + 1, 1, tzinfo=tz)
    return start, end


def week_bounds(key: WeekKey, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """[start, end) of a week in the reporting zone."""
    tz = tz or UTC
    monday = week_start(*key)
    start = datetime.combine(monday, time.min, tzinfo=tz)
    end = datetime.combine(monday + timedelta(days=7), time.min, tzinfo=tz)
    return start, end


def previous_months(key: MonthKey, count: int) -> List[MonthKey]:
    """The `count` month keys ending at `key`, oldest first."""
    months = []
    year, month = key
    for _ in range(count):
        months.append(MonthKey(year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    months.reverse()
    return months


def collapse_replacements(
    reviews: Iterable[ReviewRecord],
    bucket: Callable[[datetime], Hashable] = bucket_by_month,
) -> List[ReviewRecord]:
    """One record per (subject, KPI, period); later records replace earlier ones."""
    latest: Dict[Tuple[Any, Any, Hashable], ReviewRecord] = {}
    for review in reviews:
        key = (review.subject_id, review.kpi_id, bucket(review.period_timestamp))
        latest.pop(key, None)
        latest[key] = review
    return list(latest.values())


# ---------------------------------------------------------------------------
# Trends and roll-ups
# ---------------------------------------------------------------------------

def trend(period_scores: Sequence[int], dead_band: int = 2) -> Trend:
    """Compare the last two period scores (oldest first)."""
    if not period_scores:
        raise ValueError("trend needs at least one period score")
    if len(period_scores) < 2:
        return Trend(TrendDirection.STABLE, 0)

    delta = period_scores[-1] - period_scores[-2]
    if abs(delta) < dead_band:
        return Trend(TrendDirection.STABLE, 0)
    direction = TrendDirection.UP if delta > 0 else TrendDirection.DOWN
    return Trend(direction, abs(delta))


def assigned_clinicians(director_id, assignments: Mapping[Any, Any]) -> List[Any]:
    return [clinician for clinician, director in assignments.items() if director == director_id]


def assignment_count(director_id, assignments: Mapping[Any, Any]) -> int:
    return len(assigned_clinicians(director_id, assignments))


def director_rollup(director_id, subject_scores: Mapping[Any, int], assignments: Mapping[Any, Any]) -> int:
    """
    Mean score of the clinicians assigned to `director_id`.

    Returns 0 when nobody is assigned; use `assignment_count` to tell that
    apart from a real zero average.
    """
    clinicians = assigned_clinicians(director_id, assignments)
    if not clinicians:
        return 0
    total = sum(subject_scores.get(clinician, 0) for clinician in clinicians)
    return round_half_up(Fraction(total, len(clinicians)))

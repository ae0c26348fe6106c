# app/services/periods.py
import calendar
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional, Union

from app.models.review import PERIOD_MONTHLY, PERIOD_WEEKLY
from app.services.scoring import (
    MonthKey, WeekKey, bucket_by_month, bucket_by_week,
    month_bounds, week_bounds, weeks_in_year,
)


def as_utc(value: datetime) -> datetime:
    """Normalise a timestamp for storage/queries. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Period:
    period_type: str
    year: int
    number: int
    start: datetime
    end: datetime  # exclusive

    @property
    def key(self) -> Union[MonthKey, WeekKey]:
        if self.period_type == PERIOD_MONTHLY:
            return MonthKey(self.year, self.number)
        return WeekKey(self.year, self.number)

    @property
    def label(self) -> str:
        if self.period_type == PERIOD_MONTHLY:
            return f"{calendar.month_name[self.number]} {self.year}"
        return f"Week {self.number}, {self.year}"

    def contains(self, value: datetime) -> bool:
        return self.start <= value < self.end

    def as_dict(self) -> dict:
        return {
            "period_type": self.period_type,
            "year": self.year,
            "number": self.number,
            "label": self.label,
            "start": self.start,
            "end": self.end,
        }


def make_period(period_type: str, year: int, number: int, tz: tzinfo) -> Period:
    if period_type == PERIOD_MONTHLY:
        if not 1 <= number <= 12:
            raise ValueError("Invalid month")
        start, end = month_bounds(MonthKey(year, number), tz)
    elif period_type == PERIOD_WEEKLY:
        if not 1 <= number <= weeks_in_year(year):
            raise ValueError(f"Invalid week for {year}")
        start, end = week_bounds(WeekKey(year, number), tz)
    else:
        raise ValueError(f"Unknown period type {period_type!r}")
    return Period(period_type, year, number, start, end)


def period_of(value: datetime, period_type: str, tz: tzinfo) -> Period:
    if period_type == PERIOD_MONTHLY:
        year, number = bucket_by_month(value, tz)
    else:
        year, number = bucket_by_week(value, tz)
    return make_period(period_type, year, number, tz)


def current_period(period_type: str, tz: tzinfo, now: Optional[datetime] = None) -> Period:
    return period_of(now or datetime.now(timezone.utc), period_type, tz)


def resolve_period(
    period_type: str,
    year: Optional[int],
    number: Optional[int],
    tz: tzinfo,
    now: Optional[datetime] = None,
) -> Period:
    """Explicit period, or the current one when year/number are left out."""
    if year is None and number is None:
        return current_period(period_type, tz, now)
    if year is None or number is None:
        raise ValueError("year and number must be given together")
    if year < 1900 or year > 2100:
        raise ValueError("Invalid year")
    return make_period(period_type, year, number, tz)

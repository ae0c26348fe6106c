"""
Tests for period resolution used by the review and performance endpoints.
"""

import pytest
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from app.services.periods import as_utc, current_period, make_period, period_of, resolve_period
from app.services.reviews import default_review_date

UTC = timezone.utc


class TestMakePeriod:

    def test_monthly_period(self):
        period = make_period("monthly", 2024, 2, UTC)
        assert period.label == "February 2024"
        assert period.start == datetime(2024, 2, 1, tzinfo=UTC)
        assert period.end == datetime(2024, 3, 1, tzinfo=UTC)

    def test_weekly_period(self):
        period = make_period("weekly", 2024, 3, UTC)
        assert period.label == "Week 3, 2024"
        assert period.start == datetime(2024, 1, 15, tzinfo=UTC)
        assert (period.end - period.start).days == 7

    @pytest.mark.parametrize("period_type, number", [("monthly", 0), ("monthly", 13), ("weekly", 0), ("weekly", 54)])
    def test_out_of_range_number(self, period_type, number):
        with pytest.raises(ValueError):
            make_period(period_type, 2024, number, UTC)

    def test_unknown_period_type(self):
        with pytest.raises(ValueError):
            make_period("quarterly", 2024, 1, UTC)

    def test_contains_is_half_open(self):
        period = make_period("monthly", 2024, 1, UTC)
        assert period.contains(datetime(2024, 1, 1, tzinfo=UTC))
        assert period.contains(datetime(2024, 1, 31, 23, 59, 59, tzinfo=UTC))
        assert not period.contains(datetime(2024, 2, 1, tzinfo=UTC))

    def test_bounds_follow_reporting_zone(self):
        tz = ZoneInfo("America/New_York")
        period = make_period("monthly", 2024, 1, tz)
        assert as_utc(period.start) == datetime(2024, 1, 1, 5, tzinfo=UTC)


class TestResolvePeriod:

    NOW = datetime(2024, 6, 12, 9, 30, tzinfo=UTC)

    def test_defaults_to_current_month(self):
        period = resolve_period("monthly", None, None, UTC, now=self.NOW)
        assert (period.year, period.number) == (2024, 6)

    def test_defaults_to_current_week(self):
        period = resolve_period("weekly", None, None, UTC, now=self.NOW)
        assert period.contains(self.NOW)
        assert period.start.weekday() == 0

    def test_year_without_number_is_rejected(self):
        with pytest.raises(ValueError):
            resolve_period("monthly", 2024, None, UTC)

    def test_year_out_of_range_is_rejected(self):
        with pytest.raises(ValueError):
            resolve_period("monthly", 1800, 1, UTC)

    def test_current_period_matches_period_of(self):
        assert current_period("monthly", UTC, now=self.NOW) == period_of(self.NOW, "monthly", UTC)


class TestDefaultReviewDate:

    def test_open_period_uses_now(self):
        now = datetime(2024, 6, 12, tzinfo=UTC)
        period = make_period("monthly", 2024, 6, UTC)
        assert default_review_date(period, now) == now

    def test_past_period_uses_period_start(self):
        now = datetime(2024, 6, 12, tzinfo=UTC)
        period = make_period("monthly", 2024, 3, UTC)
        assert default_review_date(period, now) == datetime(2024, 3, 1, tzinfo=UTC)


def test_as_utc_treats_naive_values_as_utc():
    assert as_utc(datetime(2024, 1, 1, 12)) == datetime(2024, 1, 1, 12, tzinfo=UTC)
    offset = datetime(2024, 1, 1, 12, tzinfo=ZoneInfo("Europe/Paris"))
    assert as_utc(offset) == datetime(2024, 1, 1, 11, tzinfo=UTC)

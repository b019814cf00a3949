"""Tests for UtilizationCalculator and efficiency ratings."""

from datetime import timedelta

import pytest

from fieldcrew.domain.scheduling.utilization import (
    EfficiencyRating,
    UtilizationCalculator,
    efficiency_rating,
    utilization_percentage,
)
from tests.conftest import (
    MONDAY,
    NEW_YORK,
    SUNDAY,
    UTC,
    WEEKDAYS_NINE_TO_FIVE,
    at,
    make_booking,
    make_calendar,
)


def _week_of_bookings(hours_per_day: list[int], **kwargs):
    """One booking per weekday starting Monday 09:00"""
    return [
        make_booking(at(MONDAY + timedelta(days=i), "09:00"), hours * 60, job_id=f"j{i}", **kwargs)
        for i, hours in enumerate(hours_per_day)
        if hours
    ]


class TestUtilizationCalculator:
    def setup_method(self):
        self.calculator = UtilizationCalculator(UTC)

    def test_twenty_of_forty_hours_is_fifty_percent(self):
        calendar = make_calendar(
            weekly=WEEKDAYS_NINE_TO_FIVE, bookings=_week_of_bookings([4, 4, 4, 4, 4])
        )
        summary = self.calculator.calculate(calendar, at(MONDAY, "12:00"))
        assert summary.capacity_hours == 40
        assert summary.booked_hours == 20
        assert summary.utilization == 50.0
        # 50% sits within the optimal band (<= 60)
        assert summary.rating == EfficiencyRating.OPTIMAL

    def test_zero_capacity_is_zero_utilization(self):
        calendar = make_calendar(weekly={}, bookings=_week_of_bookings([8, 8]))
        summary = self.calculator.calculate(calendar, at(MONDAY, "12:00"))
        assert summary.capacity_minutes == 0
        assert summary.utilization == 0.0

    def test_utilization_is_capped_at_one_hundred(self):
        calendar = make_calendar(bookings=_week_of_bookings([8, 8, 8]))
        summary = self.calculator.calculate(calendar, at(MONDAY, "12:00"))
        assert summary.utilization == 100.0
        assert summary.rating == EfficiencyRating.OVERLOADED

    def test_cancelled_bookings_do_not_count_but_completed_do(self):
        calendar = make_calendar(
            weekly=WEEKDAYS_NINE_TO_FIVE,
            bookings=[
                make_booking(at(MONDAY, "09:00"), 240, job_id="done", status="completed"),
                make_booking(at(MONDAY, "14:00"), 240, job_id="off", status="cancelled"),
            ],
        )
        summary = self.calculator.calculate(calendar, at(MONDAY, "12:00"))
        assert summary.booked_minutes == 240

    def test_week_runs_sunday_to_sunday(self):
        calendar = make_calendar(
            weekly=WEEKDAYS_NINE_TO_FIVE,
            bookings=[
                make_booking(at(SUNDAY, "00:00"), 60, job_id="in-week"),
                make_booking(at(SUNDAY - timedelta(days=1), "23:00"), 60, job_id="last-week"),
                make_booking(at(SUNDAY + timedelta(days=7), "00:00"), 60, job_id="next-week"),
            ],
        )
        summary = self.calculator.calculate(calendar, at(MONDAY, "12:00"))
        assert summary.week_start == at(SUNDAY, "00:00")
        assert summary.week_end == at(SUNDAY + timedelta(days=7), "00:00")
        assert summary.booked_minutes == 60

    def test_excluded_job_is_not_counted(self):
        calendar = make_calendar(
            weekly=WEEKDAYS_NINE_TO_FIVE, bookings=_week_of_bookings([4, 4])
        )
        summary = self.calculator.calculate(calendar, at(MONDAY, "12:00"), exclude_job_id="j0")
        assert summary.booked_minutes == 240

    def test_week_boundaries_use_business_timezone(self):
        calculator = UtilizationCalculator(NEW_YORK)
        # Saturday 22:00 in New York is already Sunday in UTC
        saturday_night = at(SUNDAY - timedelta(days=1), "22:00", NEW_YORK)
        calendar = make_calendar(
            weekly=WEEKDAYS_NINE_TO_FIVE,
            bookings=[make_booking(saturday_night, 60, job_id="late")],
        )
        summary = calculator.calculate(calendar, at(MONDAY, "12:00", NEW_YORK))
        assert summary.booked_minutes == 0

    def test_results_are_cached_per_worker_and_week(self):
        calendar = make_calendar(weekly=WEEKDAYS_NINE_TO_FIVE)
        first = self.calculator.calculate(calendar, at(MONDAY, "09:00"))
        second = self.calculator.calculate(calendar, at(MONDAY + timedelta(days=2), "15:00"))
        assert first is second


class TestEfficiencyRating:
    @pytest.mark.parametrize(
        "utilization, expected",
        [
            (0, EfficiencyRating.OPTIMAL),
            (60, EfficiencyRating.OPTIMAL),
            (60.1, EfficiencyRating.GOOD),
            (80, EfficiencyRating.GOOD),
            (95, EfficiencyRating.BUSY),
            (95.5, EfficiencyRating.OVERLOADED),
            (100, EfficiencyRating.OVERLOADED),
        ],
    )
    def test_thresholds(self, utilization, expected):
        assert efficiency_rating(utilization) == expected

    def test_percentage_helper(self):
        assert utilization_percentage(0, 0) == 0.0
        assert utilization_percentage(600, 0) == 0.0
        assert utilization_percentage(120, 480) == 25.0
        assert utilization_percentage(960, 480) == 100.0

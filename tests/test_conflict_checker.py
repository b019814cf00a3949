"""Tests for ConflictChecker: booking overlap and window containment."""

from datetime import timedelta

from fieldcrew.domain.scheduling.calendar import DateException
from fieldcrew.domain.scheduling.conflicts import ConflictChecker
from tests.conftest import MONDAY, NEW_YORK, UTC, at, make_booking, make_calendar


class TestBookingOverlap:
    def setup_method(self):
        self.checker = ConflictChecker(UTC)

    def test_free_interval_is_available(self):
        result = self.checker.check(make_calendar(), at(MONDAY, "10:00"), at(MONDAY, "11:00"))
        assert result.available
        assert result.reason == "Available"

    def test_touching_bookings_do_not_conflict(self):
        calendar = make_calendar(bookings=[make_booking(at(MONDAY, "09:00"), 60)])
        result = self.checker.check(calendar, at(MONDAY, "10:00"), at(MONDAY, "11:00"))
        assert result.available
        assert not result.has_conflicts

    def test_overlap_is_reported_by_title(self):
        calendar = make_calendar(
            bookings=[make_booking(at(MONDAY, "09:30"), 60, job_id="j1", title="Deep clean")]
        )
        result = self.checker.check(calendar, at(MONDAY, "10:00"), at(MONDAY, "11:00"))
        assert not result.available
        assert result.within_hours
        assert result.conflict_ids == ["j1"]
        assert result.reason == "Conflicts: Deep clean"

    def test_long_booking_started_earlier_still_conflicts(self):
        calendar = make_calendar(
            bookings=[
                make_booking(at(MONDAY, "09:00"), 240, job_id="long", title="Move-out clean"),
                make_booking(at(MONDAY, "09:30"), 15, job_id="short", title="Key pickup"),
            ]
        )
        result = self.checker.check(calendar, at(MONDAY, "12:00"), at(MONDAY, "13:00"))
        assert result.conflict_ids == ["long"]

    def test_excluded_job_does_not_conflict_with_itself(self):
        calendar = make_calendar(bookings=[make_booking(at(MONDAY, "10:00"), 60, job_id="moving")])
        result = self.checker.check(
            calendar, at(MONDAY, "10:30"), at(MONDAY, "11:30"), exclude_job_id="moving"
        )
        assert result.available

    def test_cancelled_and_completed_bookings_are_ignored(self):
        calendar = make_calendar(
            bookings=[
                make_booking(at(MONDAY, "10:00"), 60, job_id="c1", status="cancelled"),
                make_booking(at(MONDAY, "10:00"), 60, job_id="c2", status="completed"),
            ]
        )
        assert self.checker.check(calendar, at(MONDAY, "10:00"), at(MONDAY, "11:00")).available

    def test_in_progress_booking_blocks(self):
        calendar = make_calendar(
            bookings=[make_booking(at(MONDAY, "10:00"), 60, status="in_progress")]
        )
        assert not self.checker.check(calendar, at(MONDAY, "10:00"), at(MONDAY, "11:00")).available


class TestWindowContainment:
    def setup_method(self):
        self.checker = ConflictChecker(UTC)

    def test_outside_hours(self):
        result = self.checker.check(make_calendar(), at(MONDAY, "08:00"), at(MONDAY, "09:00"))
        assert not result.available
        assert not result.within_hours
        assert result.reason == "Outside available hours"

    def test_both_failures_are_reported(self):
        calendar = make_calendar(
            bookings=[make_booking(at(MONDAY, "16:00"), 120, title="Carpet shampoo")]
        )
        result = self.checker.check(calendar, at(MONDAY, "16:30"), at(MONDAY, "17:30"))
        assert result.reason == "Outside available hours; Conflicts: Carpet shampoo"

    def test_exact_fit_is_valid_and_one_minute_longer_is_not(self):
        calendar = make_calendar(weekly={1: [("10:00", "11:00")]})
        start = at(MONDAY, "10:00")
        assert self.checker.check(calendar, start, start + timedelta(minutes=60)).available
        assert not self.checker.check(calendar, start, start + timedelta(minutes=61)).available

    def test_seconds_past_window_end_are_outside_hours(self):
        start = at(MONDAY, "16:00") + timedelta(seconds=30)
        result = self.checker.check(make_calendar(), start, start + timedelta(minutes=60))
        assert not result.available
        assert not result.within_hours

    def test_seconds_before_window_start_are_outside_hours(self):
        start = at(MONDAY, "09:00") - timedelta(seconds=30)
        result = self.checker.check(make_calendar(), start, start + timedelta(minutes=60))
        assert not result.within_hours

    def test_seconds_inside_window_are_contained(self):
        start = at(MONDAY, "15:59") + timedelta(seconds=30)
        assert self.checker.check(make_calendar(), start, start + timedelta(minutes=60)).available

    def test_interval_cannot_span_two_windows(self):
        calendar = make_calendar(weekly={1: [("09:00", "12:00"), ("12:00", "17:00")]})
        result = self.checker.check(calendar, at(MONDAY, "11:30"), at(MONDAY, "12:30"))
        assert not result.within_hours

    def test_unavailable_exception_closes_the_day(self):
        calendar = make_calendar(exceptions=[DateException(date=MONDAY, is_available=False)])
        assert not self.checker.check(calendar, at(MONDAY, "10:00"), at(MONDAY, "11:00")).available

    def test_full_day_exception_allows_ending_at_midnight(self):
        calendar = make_calendar(exceptions=[DateException(date=MONDAY, is_available=True)])
        start = at(MONDAY, "23:00")
        assert self.checker.check(calendar, start, start + timedelta(hours=1)).available
        assert not self.checker.check(calendar, start, start + timedelta(hours=2)).available


class TestBusinessTimezone:
    def test_windows_are_business_local_wall_clock(self):
        checker = ConflictChecker(NEW_YORK)
        calendar = make_calendar()
        # 09:00 in New York on this date is 13:00 UTC (EDT)
        nine_local = at(MONDAY, "09:00", NEW_YORK)
        assert nine_local == at(MONDAY, "13:00")
        assert checker.check(calendar, nine_local, nine_local + timedelta(hours=1)).available
        assert not checker.check(calendar, at(MONDAY, "09:00"), at(MONDAY, "10:00")).available

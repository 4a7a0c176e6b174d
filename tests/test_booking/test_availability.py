"""Tests for the availability engine."""

import uuid
from datetime import date, time

import pytest

from clinic_booking.booking.availability import (
    available_dates,
    available_slots,
    compute_business_span,
    compute_end_minutes,
    day_of_week,
    format_time,
    intervals_overlap,
    is_slot_free,
    merge_window_runs,
    minutes_to_time,
    parse_time,
    to_minutes,
)
from clinic_booking.booking.models import (
    Appointment,
    AppointmentStatus,
    BusinessHourWindow,
    Service,
)

MONDAY = date(2026, 10, 19)
SUNDAY = date(2026, 10, 18)


# ------------------------------------------------------------------ fixtures

def _service(minutes: int = 30) -> Service:
    return Service(id=uuid.uuid4(), name="Consultation", duration_minutes=minutes)


def _window(day: int, start: str, end: str, active: bool = True) -> BusinessHourWindow:
    return BusinessHourWindow(
        day_of_week=day, start_time=parse_time(start), end_time=parse_time(end), is_active=active
    )


def _appt(
    start: str,
    end: str,
    on: date = MONDAY,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
) -> Appointment:
    return Appointment(
        id=uuid.uuid4(),
        appointment_date=on,
        start_time=parse_time(start),
        end_time=parse_time(end),
        status=status,
    )


@pytest.fixture
def monday_full_day():
    return [_window(1, "08:00", "17:00")]


# -------------------------------------------------------------- time parsing

class TestTimeParsing:
    def test_accepts_hh_mm_and_seconds(self):
        assert to_minutes("09:30") == 570
        assert to_minutes("09:30:59") == 570
        assert to_minutes(time(16, 45)) == 1005
        assert to_minutes(0) == 0

    @pytest.mark.parametrize("value", ["24:00", "9", "09:60", "ab:cd", "", "-1:00"])
    def test_rejects_malformed_strings(self, value):
        with pytest.raises(ValueError):
            to_minutes(value)

    def test_rejects_out_of_range_minutes(self):
        with pytest.raises(ValueError):
            to_minutes(1440)
        with pytest.raises(ValueError):
            minutes_to_time(-1)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_minutes(True)

    def test_format_is_zero_padded(self):
        assert format_time(time(8, 5)) == "08:05"
        assert minutes_to_time(990) == time(16, 30)

    def test_end_requires_positive_duration(self):
        assert compute_end_minutes("16:30", 30) == 1020
        with pytest.raises(ValueError):
            compute_end_minutes("09:00", 0)

    def test_day_of_week_starts_on_sunday(self):
        assert day_of_week(SUNDAY) == 0
        assert day_of_week(MONDAY) == 1
        assert day_of_week(date(2026, 10, 24)) == 6


# ------------------------------------------------------------------- overlap

class TestOverlap:
    @pytest.mark.parametrize(
        "a,b",
        [
            ((540, 570), (560, 600)),
            ((540, 570), (570, 600)),
            ((540, 600), (550, 560)),
            ((600, 630), (540, 570)),
            ((540, 570), (540, 570)),
        ],
    )
    def test_symmetric(self, a, b):
        assert intervals_overlap(*a, *b) == intervals_overlap(*b, *a)

    def test_back_to_back_does_not_overlap(self):
        assert intervals_overlap(540, 570, 570, 600) is False

    def test_partial_and_contained_overlap(self):
        assert intervals_overlap(540, 570, 560, 600) is True
        assert intervals_overlap(540, 600, 550, 560) is True

    def test_overlapping_confirmed_appointment_blocks(self):
        existing = [_appt("10:00", "10:45")]
        assert is_slot_free(MONDAY, "10:30", "11:00", existing) is False

    def test_cancelled_appointment_never_blocks(self):
        existing = [_appt("10:00", "10:45", status=AppointmentStatus.CANCELLED)]
        assert is_slot_free(MONDAY, "10:30", "11:00", existing) is True
        assert is_slot_free(MONDAY, "10:00", "10:45", existing) is True

    def test_other_dates_are_ignored(self):
        existing = [_appt("10:00", "10:45", on=SUNDAY)]
        assert is_slot_free(MONDAY, "10:00", "10:30", existing) is True

    def test_excluded_appointment_is_ignored(self):
        appt = _appt("10:00", "10:30")
        assert is_slot_free(MONDAY, "10:00", "10:30", [appt]) is False
        assert is_slot_free(MONDAY, "10:00", "10:30", [appt], exclude_id=appt.id) is True

    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.PENDING, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW],
    )
    def test_non_cancelled_statuses_block(self, status):
        existing = [_appt("10:00", "10:30", status=status)]
        assert is_slot_free(MONDAY, "10:15", "10:45", existing) is False


# ------------------------------------------------------------ business span

class TestBusinessSpan:
    def test_merges_disjoint_windows(self):
        windows = [_window(1, "13:00", "17:00"), _window(1, "08:00", "12:00")]
        span = compute_business_span(windows, 1)
        assert (span.earliest_start, span.latest_end) == (480, 1020)

    def test_closed_day_is_none(self):
        assert compute_business_span([_window(1, "08:00", "17:00")], 0) is None

    def test_inactive_windows_are_ignored(self):
        windows = [_window(1, "08:00", "17:00", active=False)]
        assert compute_business_span(windows, 1) is None

    def test_window_runs_keep_gaps(self):
        windows = [
            _window(1, "13:00", "17:00"),
            _window(1, "08:00", "10:00"),
            _window(1, "10:00", "12:00"),
        ]
        assert merge_window_runs(windows) == [(480, 720), (780, 1020)]

    def test_window_must_start_before_end(self):
        with pytest.raises(ValueError):
            _window(1, "12:00", "08:00")


# ---------------------------------------------------------- available slots

class TestAvailableSlots:
    def test_full_monday_with_no_bookings(self, monday_full_day):
        slots = available_slots(_service(30), MONDAY, monday_full_day, [])
        assert slots[0].start_time == time(8, 0)
        assert slots[0].end_time == time(8, 30)
        assert slots[-1].start_time == time(16, 30)
        assert slots[-1].end_time == time(17, 0)
        assert len(slots) == 18

    def test_never_exceeds_span_end(self, monday_full_day):
        slots = available_slots(_service(45), MONDAY, monday_full_day, [])
        assert all(to_minutes(s.end_time) <= 1020 for s in slots)
        assert slots[-1].start_time == time(16, 0)

    def test_idempotent(self, monday_full_day):
        existing = [_appt("10:00", "10:45")]
        first = available_slots(_service(), MONDAY, monday_full_day, existing)
        second = available_slots(_service(), MONDAY, monday_full_day, existing)
        assert first == second

    def test_overlapping_bookings_removed(self, monday_full_day):
        existing = [_appt("10:00", "10:45")]
        starts = [s.start_time for s in available_slots(_service(), MONDAY, monday_full_day, existing)]
        assert time(10, 0) not in starts
        assert time(10, 30) not in starts
        assert time(9, 30) in starts
        assert time(11, 0) in starts

    def test_cancelled_bookings_do_not_remove_slots(self, monday_full_day):
        existing = [_appt("10:00", "10:45", status=AppointmentStatus.CANCELLED)]
        starts = [s.start_time for s in available_slots(_service(), MONDAY, monday_full_day, existing)]
        assert time(10, 0) in starts

    def test_closed_day_is_empty_not_error(self, monday_full_day):
        assert available_slots(_service(), SUNDAY, monday_full_day, []) == []

    def test_window_starts_only_without_step(self):
        windows = [_window(1, "08:00", "12:00"), _window(1, "13:00", "17:00")]
        slots = available_slots(_service(), MONDAY, windows, [], step_minutes=None)
        assert [s.start_time for s in slots] == [time(8, 0), time(13, 0)]

    def test_duplicate_window_starts_deduplicated(self):
        windows = [_window(1, "08:00", "12:00"), _window(1, "08:00", "10:00")]
        slots = available_slots(_service(), MONDAY, windows, [])
        starts = [s.start_time for s in slots]
        assert len(starts) == len(set(starts))
        assert starts == sorted(starts)

    def test_merged_span_lets_slots_cross_the_gap(self):
        windows = [_window(1, "08:00", "12:00"), _window(1, "13:00", "17:00")]
        starts = [s.start_time for s in available_slots(_service(90), MONDAY, windows, [])]
        assert time(11, 30) in starts

    def test_split_windows_keep_slots_inside_their_run(self):
        windows = [_window(1, "08:00", "12:00"), _window(1, "13:00", "17:00")]
        slots = available_slots(_service(90), MONDAY, windows, [], split_disjoint_windows=True)
        starts = [s.start_time for s in slots]
        assert time(10, 30) in starts
        assert time(11, 0) not in starts
        assert time(15, 30) in starts
        assert all(
            to_minutes(s.end_time) <= 720 or to_minutes(s.start_time) >= 780 for s in slots
        )

    def test_custom_step(self, monday_full_day):
        slots = available_slots(_service(15), MONDAY, monday_full_day, [], step_minutes=15)
        assert len(slots) == 36
        assert slots[1].start_time == time(8, 15)


# ---------------------------------------------------------- available dates

class TestAvailableDates:
    def test_starts_tomorrow_and_skips_closed_days(self):
        windows = [_window(1, "08:00", "17:00"), _window(3, "08:00", "12:00")]
        found = available_dates(windows, SUNDAY, 7)
        assert found == [MONDAY, date(2026, 10, 21)]

    def test_today_is_not_offered(self):
        windows = [_window(d, "08:00", "17:00") for d in range(7)]
        found = available_dates(windows, MONDAY, 3)
        assert MONDAY not in found
        assert len(found) == 3

    def test_no_windows_means_no_dates(self):
        assert available_dates([], MONDAY, 14) == []

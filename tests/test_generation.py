from __future__ import annotations

from datetime import time, timedelta

from app.generation import batched, day_windows, generate_time_slots

from .factories import TODAY, bulk_params


class TestDayWindows:
    def test_hourly_windows_fill_the_range(self):
        assert day_windows(time(9, 0), time(12, 0), 60) == [
            (time(9, 0), time(10, 0)),
            (time(10, 0), time(11, 0)),
            (time(11, 0), time(12, 0)),
        ]

    def test_trailing_remainder_is_dropped(self):
        windows = day_windows(time(9, 0), time(10, 45), 30)
        assert windows[-1] == (time(10, 0), time(10, 30))
        assert len(windows) == 3

    def test_window_longer_than_range(self):
        assert day_windows(time(9, 0), time(9, 45), 60) == []

    def test_last_window_may_end_at_midnight_boundary(self):
        windows = day_windows(time(22, 0), time(23, 59), 60)
        assert windows == [(time(22, 0), time(23, 0))]


class TestGenerateTimeSlots:
    def test_single_day(self):
        drafts = generate_time_slots(bulk_params())
        assert [(d.start_time, d.end_time) for d in drafts] == [
            (time(9, 0), time(10, 0)),
            (time(10, 0), time(11, 0)),
            (time(11, 0), time(12, 0)),
        ]
        assert all(d.max_capacity == 5 and d.is_available for d in drafts)

    def test_every_day_in_range_inclusive(self):
        params = bulk_params(
            start_date=TODAY + timedelta(days=1), end_date=TODAY + timedelta(days=7)
        )
        drafts = generate_time_slots(params)
        assert len(drafts) == 7 * 3
        assert {d.date for d in drafts} == {TODAY + timedelta(days=n) for n in range(1, 8)}

    def test_excluded_weekdays_are_skipped(self):
        start = TODAY + timedelta(days=1)
        params = bulk_params(
            start_date=start,
            end_date=start + timedelta(days=6),
            exclude_weekdays={5, 6},
        )
        drafts = generate_time_slots(params)
        assert len(drafts) == 5 * 3
        assert all(d.date.weekday() < 5 for d in drafts)

    def test_all_days_excluded(self):
        day = TODAY + timedelta(days=1)
        params = bulk_params(start_date=day, end_date=day, exclude_weekdays={day.weekday()})
        assert generate_time_slots(params) == []


def test_batched():
    assert list(batched(list(range(23)), 10)) == [
        list(range(10)),
        list(range(10, 20)),
        [20, 21, 22],
    ]

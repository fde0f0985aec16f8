from datetime import date, datetime, timezone

from cfb_pickem.utils.season_calendar import (
    current_season_week,
    game_days_for_week,
    local_today,
    week_deadline,
)

SEASON_START = date(2025, 8, 25)


def test_week_one_starts_on_season_start():
    assert current_season_week(date(2025, 8, 25), SEASON_START) == 1
    assert current_season_week(date(2025, 8, 31), SEASON_START) == 1
    assert current_season_week(date(2025, 9, 1), SEASON_START) == 2


def test_before_season_is_week_one():
    assert current_season_week(date(2025, 7, 1), SEASON_START) == 1


def test_late_dates_clamp_to_last_week():
    assert current_season_week(date(2026, 1, 20), SEASON_START) == 15
    assert current_season_week(date(2026, 1, 20), SEASON_START, max_week=12) == 12


def test_season_start_accepts_iso_string():
    assert current_season_week(date(2025, 9, 10), "2025-08-25") == 3


def test_deadline_is_saturday_evening_local():
    # Saturday 2025-08-30 20:00 MDT
    assert week_deadline(SEASON_START, 1, 20, "America/Denver") == datetime(
        2025, 8, 31, 2, 0, tzinfo=timezone.utc
    )


def test_deadline_after_dst_ends():
    # Saturday 2025-11-22 20:00 MST
    assert week_deadline(SEASON_START, 13, 20, "America/Denver") == datetime(
        2025, 11, 23, 3, 0, tzinfo=timezone.utc
    )


def test_local_today_uses_timezone():
    late_saturday = datetime(2025, 9, 1, 3, 0, tzinfo=timezone.utc)

    assert local_today(late_saturday, "America/Denver") == date(2025, 8, 31)
    assert local_today(late_saturday, "UTC") == date(2025, 9, 1)


def test_game_days_are_thursday_to_sunday():
    assert game_days_for_week(SEASON_START, 1) == [
        date(2025, 8, 28),
        date(2025, 8, 29),
        date(2025, 8, 30),
        date(2025, 8, 31),
    ]

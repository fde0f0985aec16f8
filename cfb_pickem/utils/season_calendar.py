"""
Season calendar: which week it is, and when each week's picks close
"""

from datetime import date, datetime, time, timedelta

from cfb_pickem.utils.timezone_utils import ensure_utc, get_app_timezone, localize_to_utc

SATURDAY = 5


def parse_season_start(value):
    """Accept a date or an ISO "YYYY-MM-DD" string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def local_today(now, timezone_name=None):
    """Calendar date of `now` in the app timezone"""
    return ensure_utc(now).astimezone(get_app_timezone(timezone_name)).date()


def current_season_week(today, season_start, max_week=15):
    """
    Week number for a calendar date.

    Week 1 starts on season_start; anything before it is week 1 and anything
    past the last week is clamped to max_week.
    """
    start = parse_season_start(season_start)
    days = (today - start).days
    if days < 0:
        return 1

    week = days // 7 + 1
    return max(1, min(week, max_week))


def week_start_date(season_start, week_number):
    return parse_season_start(season_start) + timedelta(weeks=week_number - 1)


def week_deadline(season_start, week_number, deadline_hour=20, timezone_name=None):
    """Saturday of the given week at deadline_hour local time, as aware UTC"""
    start = week_start_date(season_start, week_number)
    saturday = start + timedelta(days=(SATURDAY - start.weekday()) % 7)
    return localize_to_utc(datetime.combine(saturday, time(hour=deadline_hour)), timezone_name)


def game_days_for_week(season_start, week_number):
    """Thursday through Sunday of the given week"""
    start = week_start_date(season_start, week_number)
    thursday = start + timedelta(days=(3 - start.weekday()) % 7)
    return [thursday + timedelta(days=offset) for offset in range(4)]

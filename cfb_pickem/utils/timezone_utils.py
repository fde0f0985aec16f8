"""
Timezone utility functions for the CFB Pick'em application
"""

from datetime import datetime, timezone

import pytz
from flask import current_app, has_app_context


def get_app_timezone(timezone_name=None):
    """Get the application's configured timezone"""
    if timezone_name is None:
        timezone_name = (
            current_app.config.get("TIMEZONE", "UTC") if has_app_context() else "UTC"
        )
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def ensure_utc(dt):
    """Return an aware UTC datetime; naive values are taken to be UTC"""
    if dt is None:
        return None

    # SQLite drops tzinfo on the way back out
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def convert_to_app_timezone(dt, timezone_name=None):
    """Convert a datetime to the application's timezone"""
    if dt is None:
        return None

    return ensure_utc(dt).astimezone(get_app_timezone(timezone_name))


def localize_to_utc(naive_dt, timezone_name=None):
    """Interpret a naive wall-clock time in the app timezone and convert it to UTC"""
    app_tz = get_app_timezone(timezone_name)
    return app_tz.localize(naive_dt).astimezone(timezone.utc)


def parse_iso_datetime(value):
    """Parse provider ISO-8601 timestamps ("2025-09-06T16:00Z" style) into aware UTC"""
    if not value:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # Compact offsets such as "+0000"
        try:
            parsed = datetime.strptime(text, "%Y-%m-%dT%H:%M%z")
        except ValueError:
            return None

    return ensure_utc(parsed)

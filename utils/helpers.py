import math # For rounding partial days up.
from datetime import date, datetime, timedelta, timezone # For date calculations.
from zoneinfo import ZoneInfo # Outlet-local calendar days.

from flask import current_app # To read the outlet timezone from configuration.

from services.errors import ValidationError

ONE_DAY = timedelta(days=1)

def utcnow():
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def ceil_days(delta):
    """
    Converts a timedelta to whole days, rounding any partial day up.

    Args:
        delta (datetime.timedelta): The elapsed time. Negative values count as zero.

    Returns:
        int: Number of days, e.g. 0 for no time at all, 1 for one second or one day, 2 for a day and a half.
    """
    seconds = delta.total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / ONE_DAY.total_seconds())

def outlet_today(now=None):
    """
    Returns the outlet-local calendar date for a naive UTC timestamp.

    Delivery logs are bucketed per local day (midnight to midnight at the outlet),
    so a meal prepared at 00:30 local time belongs to that local day even though
    it is still the previous day in UTC.
    """
    now = now or utcnow()
    tz = ZoneInfo(current_app.config.get('OUTLET_TIMEZONE', 'UTC'))
    return now.replace(tzinfo=timezone.utc).astimezone(tz).date()

def parse_iso_date(value, field_name='date'):
    """
    Parses a YYYY-MM-DD string (or passes a date through).

    Raises:
        ValidationError: If the value is missing or not a valid date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field_name} is required (YYYY-MM-DD).")
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError: # Handle invalid date format.
        raise ValidationError(f"Invalid {field_name}. Use YYYY-MM-DD.")

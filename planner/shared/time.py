from datetime import datetime, date, time, timezone
from zoneinfo import ZoneInfo

from flask import current_app


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def org_zone() -> ZoneInfo:
    """Return the organization's configured time zone."""
    return ZoneInfo(current_app.config["ORG_TIMEZONE"])


def org_now(zone: ZoneInfo) -> datetime:
    """Current wall-clock time in ``zone``."""
    return now_utc().astimezone(zone)


def org_today(zone: ZoneInfo) -> date:
    return org_now(zone).date()


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime, zone: ZoneInfo) -> date:
    return as_utc(value).astimezone(zone).date()


def scheduled_start(day: date, start: time, zone: ZoneInfo) -> datetime:
    """Localize a seance's (date, start_time) in ``zone``."""
    return datetime.combine(day, start, tzinfo=zone)


def fmt_dt(value: datetime | date | None) -> str:
    """Format datetimes without seconds; dates use D MMM YYYY."""
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%-d %b %Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%-d %b %Y")
    return str(value)


def fmt_time(value: time | str | None) -> str:
    """Render times as HH:MM, accepting strings or time objects."""
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = time.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%H:%M")


def iso_or_none(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value.isoformat()


def parse_date(value: date | str) -> date:
    """Accept a ``date`` or a ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def parse_time(value: time | str) -> time:
    """Accept a ``time`` or an ``HH:MM[:SS]`` string; wall-clock times only."""
    if not isinstance(value, time):
        value = time.fromisoformat(str(value).strip())
    if value.tzinfo is not None:
        raise ValueError(f"time {value.isoformat()!r} must not carry a UTC offset")
    return value

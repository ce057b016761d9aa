"""Roadmap timestamp formatting."""

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def system_clock(timezone: str) -> Clock:
    """Clock returning the current time in the configured zone."""
    zone = ZoneInfo(timezone)
    return lambda: datetime.now(zone)


def format_timestamp(moment: datetime) -> str:
    """'MM.DD.YY | HH:MM AM TZ', e.g. '04.10.25 | 10:00 AM PDT'."""
    tz = moment.strftime("%Z")
    # Zones without a letter abbreviation (e.g. "+04") are written in UTC
    if not (tz.isalpha() and tz.isupper() and 2 <= len(tz) <= 5):
        moment = moment.astimezone(ZoneInfo("UTC"))
        tz = "UTC"
    hour = moment.strftime("%I").lstrip("0") or "12"
    return f"{moment.strftime('%m.%d.%y')} | {hour}:{moment.strftime('%M %p')} {tz}"


def format_date(moment: datetime) -> str:
    """'MM.DD.YY'"""
    return moment.strftime("%m.%d.%y")

"""
Date and time helpers.
Dates are ISO strings (YYYY-MM-DD) in the company timezone; timestamps are epoch milliseconds.
"""
import calendar
import time
from datetime import datetime
from typing import Optional, Tuple
import pytz
from ..config import settings


def now_local(timezone_str: Optional[str] = None) -> datetime:
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.now(tz)


def today_str(timezone_str: Optional[str] = None) -> str:
    return now_local(timezone_str).strftime("%Y-%m-%d")


def now_time(timezone_str: Optional[str] = None) -> str:
    """Current wall-clock time as HH:MM."""
    return now_local(timezone_str).strftime("%H:%M")


def current_month(timezone_str: Optional[str] = None) -> str:
    return now_local(timezone_str).strftime("%Y-%m")


def epoch_ms() -> int:
    return int(time.time() * 1000)


def parse_month(month: str) -> Tuple[int, int]:
    """
    Parse a YYYY-MM string.

    Raises:
        ValueError: if the string is not a valid month
    """
    try:
        year_s, month_s = month.split("-")
        year, mon = int(year_s), int(month_s)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid month: {month!r}")
    if not 1 <= year <= 9999 or not 1 <= mon <= 12:
        raise ValueError(f"Invalid month: {month!r}")
    return year, mon


def days_in_month(month: str) -> int:
    year, mon = parse_month(month)
    return calendar.monthrange(year, mon)[1]


def day_str(month: str, day: int) -> str:
    return f"{month}-{day:02d}"


def day_of_month(date_str: Optional[str]) -> int:
    """Day component of a YYYY-MM-DD string, 0 when missing or malformed."""
    try:
        return int((date_str or "").split("-")[2])
    except (IndexError, ValueError):
        return 0


def fmt_date(date_str: Optional[str]) -> str:
    """Render YYYY-MM-DD as '05 Mar 2024', '-' when empty."""
    if not date_str:
        return "-"
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").strftime("%d %b %Y")
    except ValueError:
        return date_str


def fmt_ts(ts_ms: Optional[int], timezone_str: Optional[str] = None) -> str:
    if not ts_ms:
        return "-"
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.fromtimestamp(ts_ms / 1000, tz).strftime("%d %b %Y, %H:%M")


def month_label(month: str) -> str:
    year, mon = parse_month(month)
    return datetime(year, mon, 1).strftime("%B %Y")

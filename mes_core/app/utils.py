"""
Shared value helpers: plant business dates (YYYYMMDD) and numeric projection.
"""

from datetime import date, datetime
from typing import Optional, Union

YMD = "%Y%m%d"

DateLike = Union[str, date, datetime, None]


def today_ymd() -> str:
    return date.today().strftime(YMD)


def compact_date(value: DateLike, default_today: bool = False) -> Optional[str]:
    """
    Normalize '2024-03-05', '2024/03/05', '20240305' or a date to '20240305'.

    Empty input gives None, or today when default_today is set.
    Raises ValueError for anything that isn't a real calendar date.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return today_ymd() if default_today else None
    if isinstance(value, datetime):
        return value.strftime(YMD)
    if isinstance(value, date):
        return value.strftime(YMD)

    digits = value.strip().replace("-", "").replace("/", "").replace(".", "")
    if len(digits) != 8 or not digits.isdigit():
        raise ValueError(f"invalid date: {value!r}")
    datetime.strptime(digits, YMD)
    return digits


def parse_ymd(value: DateLike) -> Optional[date]:
    """Parse a business date into a date; None for empty or unreadable input."""
    try:
        ymd = compact_date(value)
    except ValueError:
        return None
    if ymd is None:
        return None
    return datetime.strptime(ymd, YMD).date()


def dashed(ymd: Optional[str]) -> str:
    """'20240305' -> '2024-03-05' for display"""
    if not ymd or len(ymd) != 8:
        return ymd or ""
    return f"{ymd[:4]}-{ymd[4:6]}-{ymd[6:]}"


def to_float(value, default: float = 0.0) -> float:
    """Numeric column value (int, float, Decimal or None) as a JSON-friendly float"""
    if value is None:
        return default
    return float(value)


def clock(value) -> str:
    """HH:MM of a timestamp column; drivers hand back datetime or ISO text."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%H:%M")
    text = str(value)
    # 'YYYY-MM-DD HH:MM:SS' as stored by SQLite
    if len(text) >= 16 and text[10] in (" ", "T"):
        return text[11:16]
    return text

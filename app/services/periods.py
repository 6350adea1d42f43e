# app/services/periods.py
#
# Date Range Utilities
# Month ranges and the analytics reporting periods
# (all time, this month, last 3 / 6 months, this year).

from datetime import date, datetime
from typing import Optional, Tuple

PERIOD_OPTIONS = [
    ("all", "All time"),
    ("month", "This month"),
    ("3m", "Last 3 months"),
    ("6m", "Last 6 months"),
    ("year", "This year"),
]

DEFAULT_PERIOD = "all"


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """(year, month) moved by `delta` months, e.g. (2025, 1, -1) -> (2024, 12)."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def get_month_range(month_str: str | None, today: date | None = None):
    """
    month_str: 'YYYY-MM' or None.
    Returns (start_date, end_date_exclusive, normalized_month_str).
    If month_str is None or invalid, uses the current month.
    """
    today = today or date.today()

    # 1) pick year/month
    year, month = today.year, today.month
    if month_str:
        try:
            year_str, month_only_str = month_str.split("-")
            y, m = int(year_str), int(month_only_str)
            if 1 <= m <= 12:
                year, month = y, m
        except ValueError:
            pass

    # 2) compute start and first day of next month
    start_date = date(year, month, 1)
    next_year, next_month = shift_month(year, month, 1)
    end_date_exclusive = date(next_year, next_month, 1)

    normalized = f"{year:04d}-{month:02d}"
    return start_date, end_date_exclusive, normalized


def get_period_label(period: str) -> str:
    return dict(PERIOD_OPTIONS).get(period, "All time")


def get_period_range(period: str, now: datetime | None = None) -> Tuple[Optional[datetime], datetime]:
    """
    (start, end) for an analytics period. `start` is None for "all";
    unknown periods behave like "all".
    """
    now = now or datetime.now()

    def month_start(months_back: int) -> datetime:
        y, m = shift_month(now.year, now.month, -months_back)
        return datetime(y, m, 1)

    if period == "month":
        return month_start(0), now
    if period == "3m":
        return month_start(2), now
    if period == "6m":
        return month_start(5), now
    if period == "year":
        return datetime(now.year, 1, 1), now
    return None, now

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .errors import InvalidTask


@dataclass(frozen=True)
class DateWindow:
    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        return self.start <= value <= self.end

    def days(self) -> list[date]:
        """Every calendar day touched by the window, oldest first."""
        first, last = self.start.date(), self.end.date()
        return [first + timedelta(days=offset) for offset in range((last - first).days + 1)]


def day_bounds(day: date) -> DateWindow:
    return DateWindow(datetime.combine(day, time.min), datetime.combine(day, time.max))


def month_window(year: int, month: int) -> DateWindow:
    if not 1 <= month <= 12:
        raise InvalidTask(f"Month must be between 1 and 12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    return DateWindow(
        datetime.combine(date(year, month, 1), time.min),
        datetime.combine(date(year, month, last_day), time.max),
    )


def trailing_window(now: datetime, days: int) -> DateWindow:
    return DateWindow(now - timedelta(days=days), now)


def sunday_weekday(value: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def start_of_week(day: date) -> date:
    return day - timedelta(days=sunday_weekday(day))

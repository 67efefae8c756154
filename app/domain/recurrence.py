"""Occurrence generation for recurring tasks.

``expand`` is a pure function: the same start date, rule and horizon always
produce the same list, and nothing is carried between calls. Weekday indices
follow the stored convention 0=Sunday .. 6=Saturday.
"""
from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from itertools import islice
from typing import Any, Iterator, Optional

from .entities import RecurrenceSpec
from .enums import RecurrenceType
from .errors import InvalidRule
from .filters import DateWindow, sunday_weekday

MAX_OCCURRENCES = 1000


def validate_rule(rule: RecurrenceSpec) -> None:
    if not isinstance(rule.interval, int) or rule.interval < 1:
        raise InvalidRule(f"Interval must be a positive integer, got {rule.interval!r}")
    if rule.count is not None and (not isinstance(rule.count, int) or rule.count < 1):
        raise InvalidRule(f"Count must be a positive integer, got {rule.count!r}")
    for day in rule.weekdays:
        if not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidRule("Weekdays must be between 0 (Sunday) and 6 (Saturday)")


def rule_from_dict(data: Optional[dict[str, Any]]) -> RecurrenceSpec:
    """Build a validated rule from request data; ``None`` means not recurring."""
    if not data:
        return RecurrenceSpec()
    try:
        rule_type = RecurrenceType(data.get("type", RecurrenceType.NONE.value))
    except ValueError as exc:
        raise InvalidRule(f"Unknown recurrence type {data.get('type')!r}") from exc

    end_date = data.get("endDate")
    if isinstance(end_date, str):
        try:
            end_date = datetime.fromisoformat(end_date.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidRule(f"Invalid recurrence end date {end_date!r}") from exc
    if isinstance(end_date, datetime) and end_date.tzinfo is not None:
        end_date = end_date.astimezone(timezone.utc).replace(tzinfo=None)

    rule = RecurrenceSpec(
        type=rule_type,
        interval=data.get("interval", 1),
        end_date=end_date,
        count=data.get("count"),
        weekdays=tuple(data.get("weekdays") or ()),
    )
    validate_rule(rule)
    return rule


def add_months(base: datetime, months: int, anchor_day: int | None = None) -> datetime:
    """Shift by whole months, clamping to the last day of short months.

    ``anchor_day`` is the day-of-month to aim for, so a series started on the
    31st keeps landing on month ends instead of drifting to the 28th.
    """
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(anchor_day or base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def next_occurrence(
    current: datetime, rule: RecurrenceSpec, anchor_day: int | None = None
) -> datetime | None:
    if rule.type == RecurrenceType.DAILY:
        return current + timedelta(days=rule.interval)
    if rule.type == RecurrenceType.WEEKLY:
        if rule.weekdays:
            for offset in range(1, 8):
                candidate = current + timedelta(days=offset)
                if sunday_weekday(candidate) in rule.weekdays:
                    return candidate
        return current + timedelta(weeks=rule.interval)
    if rule.type == RecurrenceType.MONTHLY:
        return add_months(current, rule.interval, anchor_day)
    if rule.type == RecurrenceType.YEARLY:
        return add_months(current, 12 * rule.interval, anchor_day)
    return None


def iter_occurrences(
    start: datetime, rule: RecurrenceSpec, horizon_end: datetime
) -> Iterator[datetime]:
    horizon = min(horizon_end, rule.end_date) if rule.end_date else horizon_end
    if start > horizon:
        return
    current = start
    emitted = 1
    yield current
    while rule.count is None or emitted < rule.count:
        following = next_occurrence(current, rule, start.day)
        if following is None or following > horizon:
            return
        current = following
        emitted += 1
        yield current


def expand(
    start: datetime,
    rule: RecurrenceSpec,
    horizon_end: datetime,
    limit: int = MAX_OCCURRENCES,
) -> list[datetime]:
    """Occurrences from ``start`` up to ``horizon_end``, at most ``limit`` of them.

    ``limit`` can lower the cap but never raise it past ``MAX_OCCURRENCES``.

    The rule must already be validated. A non-recurring rule yields only the
    start date.
    """
    return list(
        islice(iter_occurrences(start, rule, horizon_end), min(limit, MAX_OCCURRENCES))
    )


def instance_dates(
    occurrences: list[datetime], window: DateWindow, parent_date: datetime
) -> list[datetime]:
    """Occurrences inside ``window`` that do not fall on the parent's own day."""
    return [
        occurrence
        for occurrence in occurrences
        if window.contains(occurrence) and occurrence.date() != parent_date.date()
    ]

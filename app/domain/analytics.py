"""Derived task statistics.

Every function here is pure: it takes already-fetched tasks and returns fresh
records. Empty input always produces zero-valued records. Day buckets use the
naive UTC calendar date of the relevant timestamp and weeks start on Sunday.
"""
from __future__ import annotations

import calendar
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Iterable, Optional

from .entities import TaskEntity
from .enums import Priority, TrendPeriod
from .filters import DateWindow, start_of_week

# Upper count bounds for heatmap levels 1..3; anything above is level 4.
HEATMAP_THRESHOLDS: tuple[int, int, int] = (2, 4, 6)
WEEKS_IN_REPORT = 12
MONTHS_IN_REPORT = 6
TOP_CATEGORY_LIMIT = 10
MIN_CATEGORY_LENGTH = 3


@dataclass(frozen=True)
class ScoreWeights:
    completion_rate: float = 0.4
    volume: float = 30.0
    volume_target_per_day: float = 3.0
    streak: float = 20.0
    streak_target_days: int = 7
    high_priority_rate: float = 0.1


def round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def percentage(part: int, whole: int) -> float:
    return round2(part / whole * 100) if whole else 0.0


@dataclass(frozen=True)
class CompletionStats:
    total_tasks: int
    completed_tasks: int
    completion_rate: float
    overdue_tasks: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTasks": self.total_tasks,
            "completedTasks": self.completed_tasks,
            "completionRate": self.completion_rate,
            "overdueTasks": self.overdue_tasks,
        }


@dataclass(frozen=True)
class PriorityStat:
    priority: Priority
    total: int
    completed: int
    completion_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority.value,
            "total": self.total,
            "completed": self.completed,
            "completionRate": self.completion_rate,
        }


@dataclass(frozen=True)
class DailyStat:
    date: date
    tasks_created: int
    tasks_completed: int
    completion_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "tasksCreated": self.tasks_created,
            "tasksCompleted": self.tasks_completed,
            "completionRate": self.completion_rate,
        }


@dataclass(frozen=True)
class PeriodStat:
    label: str
    start: date
    end: date
    tasks_created: int
    tasks_completed: int
    completion_rate: float
    average_tasks_per_day: float

    def to_dict(self, label_key: str) -> dict[str, Any]:
        return {
            label_key: self.label,
            "tasksCreated": self.tasks_created,
            "tasksCompleted": self.tasks_completed,
            "completionRate": self.completion_rate,
            "averageTasksPerDay": self.average_tasks_per_day,
        }


@dataclass(frozen=True)
class HeatmapCell:
    date: date
    count: int
    level: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "count": self.count, "level": self.level}


@dataclass(frozen=True)
class StreakData:
    current_streak: int
    longest_streak: int
    last_completion_date: Optional[date]

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastCompletionDate": (
                self.last_completion_date.isoformat() if self.last_completion_date else None
            ),
        }


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "count": self.count}


@dataclass(frozen=True)
class TrendPoint:
    date: date
    completions: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "completions": self.completions}


@dataclass(frozen=True)
class AnalyticsReport:
    completion_stats: CompletionStats
    priority_stats: list[PriorityStat]
    daily_stats: list[DailyStat]
    weekly_stats: list[PeriodStat]
    monthly_stats: list[PeriodStat]
    heatmap_data: list[HeatmapCell]
    streak_data: StreakData
    top_categories: list[CategoryCount]
    average_tasks_per_day: float
    productivity_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "completionStats": self.completion_stats.to_dict(),
            "priorityStats": [stat.to_dict() for stat in self.priority_stats],
            "dailyStats": [stat.to_dict() for stat in self.daily_stats],
            "weeklyStats": [stat.to_dict("week") for stat in self.weekly_stats],
            "monthlyStats": [stat.to_dict("month") for stat in self.monthly_stats],
            "heatmapData": [cell.to_dict() for cell in self.heatmap_data],
            "streakData": self.streak_data.to_dict(),
            "topCategories": [item.to_dict() for item in self.top_categories],
            "averageTasksPerDay": self.average_tasks_per_day,
            "productivityScore": self.productivity_score,
        }


def completion_stats(tasks: list[TaskEntity], now: datetime) -> CompletionStats:
    total = len(tasks)
    completed = sum(1 for task in tasks if task.completed)
    overdue = sum(1 for task in tasks if not task.completed and task.date < now)
    return CompletionStats(total, completed, percentage(completed, total), overdue)


def priority_stats(tasks: list[TaskEntity]) -> list[PriorityStat]:
    stats = []
    for priority in Priority:
        matching = [task for task in tasks if task.priority == priority]
        completed = sum(1 for task in matching if task.completed)
        stats.append(
            PriorityStat(priority, len(matching), completed, percentage(completed, len(matching)))
        )
    return stats


def daily_stats(tasks: list[TaskEntity], window: DateWindow) -> list[DailyStat]:
    created: dict[date, int] = {day: 0 for day in window.days()}
    completed: dict[date, int] = dict(created)
    for task in tasks:
        day = task.created_at.date()
        if day not in created:
            continue
        created[day] += 1
        if task.completed:
            completed[day] += 1
    return [
        DailyStat(day, created[day], completed[day], percentage(completed[day], created[day]))
        for day in created
    ]


def _period_stat(
    tasks: Iterable[TaskEntity], label: str, start: date, end: date
) -> PeriodStat:
    lower = datetime.combine(start, time.min)
    upper = datetime.combine(end, time.max)
    in_period = [task for task in tasks if lower <= task.created_at <= upper]
    completed = sum(1 for task in in_period if task.completed)
    day_count = (end - start).days + 1
    return PeriodStat(
        label=label,
        start=start,
        end=end,
        tasks_created=len(in_period),
        tasks_completed=completed,
        completion_rate=percentage(completed, len(in_period)),
        average_tasks_per_day=round2(len(in_period) / day_count),
    )


def weekly_stats(
    tasks: list[TaskEntity], now: datetime, weeks: int = WEEKS_IN_REPORT
) -> list[PeriodStat]:
    stats = []
    for offset in range(weeks - 1, -1, -1):
        week_start = start_of_week((now - timedelta(weeks=offset)).date())
        week_end = week_start + timedelta(days=6)
        label = f"{week_start:%b %d} - {week_end:%b %d}"
        stats.append(_period_stat(tasks, label, week_start, week_end))
    return stats


def monthly_stats(
    tasks: list[TaskEntity], now: datetime, months: int = MONTHS_IN_REPORT
) -> list[PeriodStat]:
    stats = []
    for offset in range(months - 1, -1, -1):
        year = now.year + (now.month - 1 - offset) // 12
        month = (now.month - 1 - offset) % 12 + 1
        month_start = date(year, month, 1)
        month_end = date(year, month, calendar.monthrange(year, month)[1])
        stats.append(_period_stat(tasks, f"{month_start:%b %Y}", month_start, month_end))
    return stats


def heatmap_level(count: int, thresholds: tuple[int, int, int] = HEATMAP_THRESHOLDS) -> int:
    if count <= 0:
        return 0
    for level, upper in enumerate(thresholds, start=1):
        if count <= upper:
            return level
    return len(thresholds) + 1


def heatmap(
    tasks: list[TaskEntity],
    window: DateWindow,
    thresholds: tuple[int, int, int] = HEATMAP_THRESHOLDS,
) -> list[HeatmapCell]:
    counts = Counter(task.created_at.date() for task in tasks if task.completed)
    return [
        HeatmapCell(day, counts.get(day, 0), heatmap_level(counts.get(day, 0), thresholds))
        for day in window.days()
    ]


def streaks(daily: list[DailyStat]) -> StreakData:
    """Current and longest runs of days with at least one completion.

    Empty days at the newest end are skipped until the current streak starts;
    after that the first empty day ends it. ``longest`` scans every day.
    """
    current = longest = running = 0
    last_completion: Optional[date] = None
    counting_current = True
    for stat in reversed(daily):
        if stat.tasks_completed > 0:
            running += 1
            longest = max(longest, running)
            if counting_current:
                if current == 0:
                    last_completion = stat.date
                current += 1
        else:
            running = 0
            if current > 0:
                counting_current = False
    return StreakData(current, longest, last_completion)


def category_of(title: str) -> str | None:
    words = title.split()
    if not words:
        return None
    word = words[0].lower()
    return word if len(word) >= MIN_CATEGORY_LENGTH else None


def top_categories(
    tasks: list[TaskEntity], limit: int = TOP_CATEGORY_LIMIT
) -> list[CategoryCount]:
    # Counter keeps first-seen order and sorted() is stable, so ties rank by first appearance.
    counts = Counter(
        category for category in map(category_of, (task.title for task in tasks)) if category
    )
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [CategoryCount(category, count) for category, count in ranked[:limit]]


def average_tasks_per_day(total: int, window_days: int) -> float:
    if total == 0 or window_days <= 0:
        return 0.0
    return round2(total / window_days)


def productivity_score(
    completion_rate: float,
    average_per_day: float,
    current_streak: int,
    high_priority_rate: float,
    weights: ScoreWeights = ScoreWeights(),
) -> float:
    score = (
        weights.completion_rate * min(completion_rate, 100.0)
        + weights.volume * min(average_per_day / weights.volume_target_per_day, 1)
        + weights.streak * min(current_streak / weights.streak_target_days, 1)
        + weights.high_priority_rate * min(high_priority_rate, 100.0)
    )
    return round2(min(max(score, 0.0), 100.0))


def build_report(
    tasks: list[TaskEntity],
    window: DateWindow,
    window_days: int,
    now: datetime,
    weights: ScoreWeights = ScoreWeights(),
) -> AnalyticsReport:
    completion = completion_stats(tasks, now)
    priorities = priority_stats(tasks)
    daily = daily_stats(tasks, window)
    streak = streaks(daily)
    average = average_tasks_per_day(completion.total_tasks, window_days)
    high_rate = next(
        (stat.completion_rate for stat in priorities if stat.priority == Priority.HIGH), 0.0
    )
    return AnalyticsReport(
        completion_stats=completion,
        priority_stats=priorities,
        daily_stats=daily,
        weekly_stats=weekly_stats(tasks, now),
        monthly_stats=monthly_stats(tasks, now),
        heatmap_data=heatmap(tasks, window),
        streak_data=streak,
        top_categories=top_categories(tasks),
        average_tasks_per_day=average,
        productivity_score=productivity_score(
            completion.completion_rate, average, streak.current_streak, high_rate, weights
        ),
    )


_TREND_BUCKETS: dict[TrendPeriod, Callable[[date], date]] = {
    TrendPeriod.DAILY: lambda day: day,
    TrendPeriod.WEEKLY: start_of_week,
    TrendPeriod.MONTHLY: lambda day: day.replace(day=1),
}


def completion_trends(
    tasks: list[TaskEntity], window: DateWindow, period: TrendPeriod = TrendPeriod.DAILY
) -> list[TrendPoint]:
    """Completions per bucket, keyed by the day each task was last updated."""
    bucket_of = _TREND_BUCKETS[period]
    counts: dict[date, int] = {}
    for day in window.days():
        counts.setdefault(bucket_of(day), 0)
    for task in tasks:
        if not task.completed:
            continue
        bucket = bucket_of(task.updated_at.date())
        if bucket in counts:
            counts[bucket] += 1
    return [TrendPoint(bucket, count) for bucket, count in counts.items()]

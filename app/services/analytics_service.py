from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from app.clock import utcnow
from app.config import SETTINGS
from app.domain.analytics import ScoreWeights, build_report, completion_trends
from app.domain.enums import TrendPeriod
from app.domain.errors import InvalidTask
from app.domain.filters import trailing_window
from app.infra.repository import TaskRepository

logger = logging.getLogger(__name__)


class AnalyticsService:
    def __init__(
        self,
        repo: TaskRepository,
        now: Callable[[], datetime] = utcnow,
        weights: ScoreWeights = ScoreWeights(),
        max_days: int = SETTINGS.analytics_max_days,
    ) -> None:
        self._repo = repo
        self._now = now
        self._weights = weights
        self._max_days = max_days

    def get_analytics(self, days: Any = SETTINGS.analytics_default_days) -> dict[str, Any]:
        days_count = self._clamp_days(days)
        now = self._now()
        window = trailing_window(now, days_count)
        logger.info(
            "Fetching analytics for %s days from %s to %s", days_count, window.start, window.end
        )
        tasks = self._repo.list_created_between(window)
        report = build_report(tasks, window, days_count, now, self._weights)
        return report.to_dict()

    def get_completion_trends(
        self, period: Any = TrendPeriod.DAILY, days: Any = SETTINGS.analytics_default_days
    ) -> list[dict[str, Any]]:
        try:
            trend_period = TrendPeriod(period)
        except ValueError as exc:
            raise InvalidTask(f"Unknown trend period {period!r}") from exc
        window = trailing_window(self._now(), self._clamp_days(days))
        tasks = self._repo.list_completed_between(window)
        return [point.to_dict() for point in completion_trends(tasks, window, trend_period)]

    def _clamp_days(self, days: Any) -> int:
        try:
            value = int(days)
        except (TypeError, ValueError) as exc:
            raise InvalidTask(f"Invalid number of days: {days!r}") from exc
        return min(max(value, 1), self._max_days)

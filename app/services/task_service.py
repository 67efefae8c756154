from __future__ import annotations

import logging
from datetime import datetime, timezone
from itertools import islice
from typing import Any

from app.domain.entities import RecurrenceSpec, TaskEntity
from app.domain.enums import Priority
from app.domain.errors import InvalidTask, NotRecurring, TaskNotFound
from app.domain.filters import DateWindow, month_window
from app.domain.recurrence import (
    MAX_OCCURRENCES,
    instance_dates,
    iter_occurrences,
    rule_from_dict,
    validate_rule,
)
from app.infra.repository import TaskRepository

logger = logging.getLogger(__name__)


def parse_datetime(value: Any, field: str = "date") -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidTask(f"Invalid {field}: {value!r}") from exc
    if not isinstance(value, datetime):
        raise InvalidTask(f"{field} is required")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_rule(value: Any) -> RecurrenceSpec:
    if isinstance(value, RecurrenceSpec):
        validate_rule(value)
        return value
    return rule_from_dict(value)


class TaskService:
    def __init__(
        self,
        repo: TaskRepository,
        max_occurrences: int = MAX_OCCURRENCES,
    ) -> None:
        self._repo = repo
        self._max_occurrences = min(max_occurrences, MAX_OCCURRENCES)

    def list_month(self, year: int, month: int) -> list[TaskEntity]:
        return self._repo.list_tasks_between(month_window(year, month))

    def get_task(self, task_id: int) -> TaskEntity:
        task = self._repo.get_task(task_id)
        if not task:
            raise TaskNotFound(task_id)
        return task

    def create_task(self, data: dict) -> TaskEntity:
        title = (data.get("title") or "").strip()
        if not title:
            raise InvalidTask("Title and date are required")
        task_date = parse_datetime(data.get("date"))
        rule = _parse_rule(data.get("recurrence"))

        task = self._repo.create_task({
            "title": title,
            "description": (data.get("description") or "").strip(),
            "date": task_date,
            "sort_order": self._repo.next_order_for_date(task_date.date()),
            "priority": self._parse_priority(data.get("priority") or Priority.MEDIUM),
            "completed": False,
            "recurrence": rule,
            "is_recurring": rule.is_recurring,
        })
        logger.info("Created task %s on %s (order %s)", task.id, task.date.date(), task.order)
        return task

    def update_task(self, task_id: int, data: dict) -> TaskEntity:
        task = self._repo.update_task(task_id, self._normalize_data(data))
        if not task:
            raise TaskNotFound(task_id)
        return task

    def delete_task(self, task_id: int) -> None:
        if not self._repo.delete_task(task_id):
            raise TaskNotFound(task_id)

    def reorder_tasks(self, moves: list[dict]) -> list[TaskEntity]:
        if not isinstance(moves, list):
            raise InvalidTask("Tasks array is required")
        normalized = []
        for move in moves:
            try:
                normalized.append({
                    "id": move["id"],
                    "order": int(move["order"]),
                    "date": parse_datetime(move["date"]),
                })
            except (KeyError, TypeError, ValueError) as exc:
                raise InvalidTask(f"Invalid reorder entry: {move!r}") from exc
        updated = self._repo.reorder_tasks(normalized)
        logger.debug("Reordered %s of %s tasks", len(updated), len(moves))
        return updated

    def generate_recurring_instances(
        self, task_id: int, range_start: Any, range_end: Any
    ) -> list[TaskEntity]:
        window = DateWindow(
            parse_datetime(range_start, "startDate"), parse_datetime(range_end, "endDate")
        )
        if window.start > window.end:
            raise InvalidTask("startDate must not be after endDate")

        parent = self.get_task(task_id)
        if not parent.recurrence or not parent.recurrence.is_recurring:
            raise NotRecurring(task_id)

        # One extra slot tells a truncated series from one ending exactly at the cap.
        occurrences = list(
            islice(
                iter_occurrences(parent.date, parent.recurrence, window.end),
                self._max_occurrences + 1,
            )
        )
        if len(occurrences) > self._max_occurrences:
            logger.warning(
                "Stopping recurring task generation for task %s at %s instances",
                task_id,
                self._max_occurrences,
            )
            occurrences = occurrences[: self._max_occurrences]

        dates = instance_dates(occurrences, window, parent.date)
        logger.info(
            "Task %s: %s occurrences, creating %s instances between %s and %s",
            task_id,
            len(occurrences),
            len(dates),
            window.start,
            window.end,
        )
        return [self._create_instance(parent, occurrence) for occurrence in dates]

    def _create_instance(self, parent: TaskEntity, occurrence: datetime) -> TaskEntity:
        return self._repo.create_task({
            "title": parent.title,
            "description": parent.description,
            "date": occurrence,
            "sort_order": self._repo.next_order_for_date(occurrence.date()),
            "priority": parent.priority,
            "completed": False,
            "recurrence": None,
            "parent_task_id": parent.id,
            "is_recurring": False,
        })

    def _normalize_data(self, data: dict) -> dict:
        normalized: dict[str, Any] = {}
        if "title" in data:
            title = (data["title"] or "").strip()
            if not title:
                raise InvalidTask("Title must not be empty")
            normalized["title"] = title
        if "description" in data:
            normalized["description"] = (data["description"] or "").strip()
        if "date" in data:
            normalized["date"] = parse_datetime(data["date"])
        if "order" in data:
            try:
                normalized["sort_order"] = int(data["order"])
            except (TypeError, ValueError) as exc:
                raise InvalidTask(f"Invalid order: {data['order']!r}") from exc
        if "priority" in data:
            normalized["priority"] = self._parse_priority(data["priority"])
        if "completed" in data:
            normalized["completed"] = bool(data["completed"])
        if "recurrence" in data:
            rule = _parse_rule(data["recurrence"])
            normalized["recurrence"] = rule
            normalized["is_recurring"] = rule.is_recurring
        return normalized

    @staticmethod
    def _parse_priority(value: Any) -> Priority:
        try:
            return Priority(value)
        except ValueError as exc:
            raise InvalidTask(f"Unknown priority {value!r}") from exc

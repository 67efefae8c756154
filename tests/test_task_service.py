from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime

import pytest

from app.domain.entities import RecurrenceSpec, TaskEntity
from app.domain.enums import Priority, RecurrenceType
from app.domain.errors import InvalidRule, InvalidTask, NotRecurring, TaskNotFound
from app.domain.filters import DateWindow
from app.domain.recurrence import MAX_OCCURRENCES
from app.services.task_service import TaskService


class FakeRepo:
    def __init__(self) -> None:
        self.tasks: list[TaskEntity] = []
        self.day_orders: dict[date, int] = {}
        self._id = 1

    def list_tasks_between(self, window: DateWindow) -> list[TaskEntity]:
        matching = [t for t in self.tasks if window.contains(t.date)]
        return sorted(matching, key=lambda t: (t.date, t.order))

    def get_task(self, task_id: int) -> TaskEntity | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def create_task(self, data: dict) -> TaskEntity:
        task = TaskEntity(
            id=self._id,
            title=data["title"],
            description=data.get("description", ""),
            date=data["date"],
            order=data["sort_order"],
            priority=Priority(data.get("priority", "medium")),
            completed=data.get("completed", False),
            created_at=datetime(2026, 1, 1),
            updated_at=datetime(2026, 1, 1),
            recurrence=data.get("recurrence") or RecurrenceSpec(),
            parent_task_id=data.get("parent_task_id"),
            is_recurring=data.get("is_recurring", False),
        )
        self.tasks.append(task)
        self._id += 1
        return task

    def update_task(self, task_id: int, data: dict) -> TaskEntity | None:
        task = self.get_task(task_id)
        if not task:
            return None
        changes = dict(data)
        if "sort_order" in changes:
            changes["order"] = changes.pop("sort_order")
        updated = replace(task, **changes)
        self.tasks = [updated if t.id == task_id else t for t in self.tasks]
        return updated

    def delete_task(self, task_id: int) -> bool:
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return len(self.tasks) != before

    def reorder_tasks(self, moves: list[dict]) -> list[TaskEntity]:
        moved = []
        for move in moves:
            task = self.update_task(move["id"], {"sort_order": move["order"], "date": move["date"]})
            if task:
                moved.append(task)
        return moved

    def next_order_for_date(self, day: date) -> int:
        self.day_orders[day] = self.day_orders.get(day, -1) + 1
        return self.day_orders[day]


def make_recurring(service: TaskService, recurrence: dict) -> TaskEntity:
    return service.create_task({
        "title": "Standup",
        "description": "team sync",
        "date": "2026-01-01T09:00:00",
        "priority": "high",
        "recurrence": recurrence,
    })


def test_create_task_assigns_order_per_day() -> None:
    service = TaskService(FakeRepo())

    first = service.create_task({"title": "A", "date": "2026-02-01T08:00:00"})
    second = service.create_task({"title": "B", "date": "2026-02-01T17:00:00"})
    other_day = service.create_task({"title": "C", "date": "2026-02-02T08:00:00"})

    assert (first.order, second.order, other_day.order) == (0, 1, 0)
    assert first.priority == Priority.MEDIUM
    assert not first.is_recurring
    assert first.recurrence.type == RecurrenceType.NONE


def test_create_task_requires_title_and_date() -> None:
    service = TaskService(FakeRepo())

    with pytest.raises(InvalidTask):
        service.create_task({"title": "   ", "date": "2026-02-01"})
    with pytest.raises(InvalidTask):
        service.create_task({"title": "Dentist"})


def test_create_task_rejects_invalid_rule() -> None:
    service = TaskService(FakeRepo())

    with pytest.raises(InvalidRule):
        service.create_task({
            "title": "Gym",
            "date": "2026-02-01",
            "recurrence": {"type": "daily", "interval": 0},
        })


def test_create_recurring_task_sets_flag() -> None:
    service = TaskService(FakeRepo())

    task = make_recurring(service, {"type": "weekly", "interval": 1, "weekdays": [1, 3]})

    assert task.is_recurring
    assert task.parent_task_id is None
    assert task.recurrence.weekdays == (1, 3)


def test_generate_recurring_instances_skips_parent_day() -> None:
    repo = FakeRepo()
    service = TaskService(repo)
    parent = make_recurring(service, {"type": "daily", "interval": 1})

    instances = service.generate_recurring_instances(
        parent.id, "2026-01-01T00:00:00", "2026-01-05T23:59:59"
    )

    assert [i.date for i in instances] == [datetime(2026, 1, day, 9) for day in (2, 3, 4, 5)]
    for instance in instances:
        assert instance.parent_task_id == parent.id
        assert not instance.is_recurring
        assert instance.title == "Standup"
        assert instance.priority == Priority.HIGH
        assert instance.order == 0
    assert len(repo.tasks) == 5


def test_generate_recurring_instances_within_later_range() -> None:
    service = TaskService(FakeRepo())
    parent = make_recurring(service, {"type": "daily", "interval": 1})

    instances = service.generate_recurring_instances(
        parent.id, "2026-01-10T00:00:00", "2026-01-12T23:59:59"
    )

    assert [i.date.day for i in instances] == [10, 11, 12]


def test_generate_for_non_recurring_task_fails() -> None:
    service = TaskService(FakeRepo())
    task = service.create_task({"title": "Once", "date": "2026-01-01T09:00:00"})

    with pytest.raises(NotRecurring):
        service.generate_recurring_instances(task.id, "2026-01-01", "2026-01-31")
    with pytest.raises(TaskNotFound):
        service.generate_recurring_instances(999, "2026-01-01", "2026-01-31")


def test_generate_rejects_inverted_range() -> None:
    service = TaskService(FakeRepo())
    parent = make_recurring(service, {"type": "daily", "interval": 1})

    with pytest.raises(InvalidTask):
        service.generate_recurring_instances(parent.id, "2026-02-01", "2026-01-01")


def test_generation_truncation_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    service = TaskService(FakeRepo(), max_occurrences=5)
    parent = make_recurring(service, {"type": "daily", "interval": 1})

    with caplog.at_level(logging.WARNING):
        instances = service.generate_recurring_instances(
            parent.id, "2026-01-01T00:00:00", "2026-12-31T00:00:00"
        )

    assert len(instances) == 4
    assert "Stopping recurring task generation" in caplog.text


def test_update_task_recomputes_recurring_flag() -> None:
    service = TaskService(FakeRepo())
    parent = make_recurring(service, {"type": "daily", "interval": 1})

    updated = service.update_task(parent.id, {"recurrence": {"type": "none"}, "completed": True})

    assert not updated.is_recurring
    assert updated.completed


def test_update_and_delete_unknown_task() -> None:
    service = TaskService(FakeRepo())

    with pytest.raises(TaskNotFound):
        service.update_task(42, {"title": "x"})
    with pytest.raises(TaskNotFound):
        service.delete_task(42)


def test_reorder_skips_missing_tasks() -> None:
    service = TaskService(FakeRepo())
    task = service.create_task({"title": "Move me", "date": "2026-02-01T08:00:00"})

    moved = service.reorder_tasks([
        {"id": task.id, "order": 3, "date": "2026-02-03T08:00:00"},
        {"id": 999, "order": 0, "date": "2026-02-03T08:00:00"},
    ])

    assert len(moved) == 1
    assert moved[0].order == 3
    assert moved[0].date == datetime(2026, 2, 3, 8)


def test_reorder_requires_list() -> None:
    with pytest.raises(InvalidTask):
        TaskService(FakeRepo()).reorder_tasks({"id": 1})


def test_list_month_validates_and_sorts() -> None:
    service = TaskService(FakeRepo())
    late = service.create_task({"title": "Late", "date": "2026-03-31T23:00:00"})
    early = service.create_task({"title": "Early", "date": "2026-03-01T00:00:00"})
    service.create_task({"title": "April", "date": "2026-04-01T00:00:00"})

    assert [t.id for t in service.list_month(2026, 3)] == [early.id, late.id]
    with pytest.raises(InvalidTask):
        service.list_month(2026, 13)


def test_configured_cap_is_clamped_to_hard_limit(caplog: pytest.LogCaptureFixture) -> None:
    repo = FakeRepo()
    service = TaskService(repo, max_occurrences=3000)
    parent = make_recurring(service, {"type": "daily", "interval": 1})

    with caplog.at_level(logging.WARNING):
        instances = service.generate_recurring_instances(
            parent.id, "2026-01-01T00:00:00", "2035-12-31T00:00:00"
        )

    assert len(instances) == MAX_OCCURRENCES - 1
    assert instances[-1].date == datetime(2028, 9, 26, 9)
    assert "Stopping recurring task generation" in caplog.text

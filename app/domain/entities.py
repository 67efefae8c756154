from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .enums import Priority, RecurrenceType


def _iso(value: Optional[datetime]) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class RecurrenceSpec:
    type: RecurrenceType = RecurrenceType.NONE
    interval: int = 1
    end_date: Optional[datetime] = None
    count: int | None = None
    weekdays: tuple[int, ...] = ()

    @property
    def is_recurring(self) -> bool:
        return self.type != RecurrenceType.NONE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "interval": self.interval}
        if self.end_date:
            data["endDate"] = _iso(self.end_date)
        if self.count is not None:
            data["count"] = self.count
        if self.weekdays:
            data["weekdays"] = list(self.weekdays)
        return data


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    title: str
    description: str
    date: datetime
    order: int
    priority: Priority
    completed: bool
    created_at: datetime
    updated_at: datetime
    recurrence: Optional[RecurrenceSpec]
    parent_task_id: int | None
    is_recurring: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": _iso(self.date),
            "order": self.order,
            "priority": self.priority.value,
            "completed": self.completed,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "recurrence": self.recurrence.to_dict() if self.recurrence else None,
            "parentTaskId": self.parent_task_id,
            "isRecurring": self.is_recurring,
        }

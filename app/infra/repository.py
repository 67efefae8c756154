from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.domain.entities import RecurrenceSpec, TaskEntity
from app.domain.enums import Priority, RecurrenceType
from app.domain.filters import DateWindow, day_bounds

from .db import SessionLocal
from .models import TaskDayOrderModel, TaskModel

ORDER_RETRIES = 3


def _to_recurrence(model: TaskModel) -> RecurrenceSpec:
    return RecurrenceSpec(
        type=RecurrenceType(model.recurrence_type),
        interval=model.recurrence_interval,
        end_date=model.recurrence_end_date,
        count=model.recurrence_count,
        weekdays=tuple(model.recurrence_weekdays or ()),
    )


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        date=model.date,
        order=model.sort_order,
        priority=Priority(model.priority),
        completed=model.completed,
        created_at=model.created_at,
        updated_at=model.updated_at,
        recurrence=_to_recurrence(model),
        parent_task_id=model.parent_task_id,
        is_recurring=model.is_recurring,
    )


def _to_columns(data: dict[str, Any]) -> dict[str, Any]:
    columns = dict(data)
    if "priority" in columns and isinstance(columns["priority"], Priority):
        columns["priority"] = columns["priority"].value
    if "recurrence" in columns:
        rule = columns.pop("recurrence") or RecurrenceSpec()
        columns.update(
            recurrence_type=rule.type.value,
            recurrence_interval=rule.interval,
            recurrence_end_date=rule.end_date,
            recurrence_count=rule.count,
            recurrence_weekdays=list(rule.weekdays) or None,
        )
    return columns


class TaskRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_tasks_between(self, window: DateWindow) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.date.between(window.start, window.end))
                .order_by(TaskModel.date.asc(), TaskModel.sort_order.asc())
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def list_created_between(self, window: DateWindow) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.created_at.between(window.start, window.end))
                .order_by(TaskModel.created_at.asc())
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def list_completed_between(self, window: DateWindow) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = (
                select(TaskModel)
                .where(
                    TaskModel.completed.is_(True),
                    TaskModel.updated_at.between(window.start, window.end),
                )
                .order_by(TaskModel.updated_at.asc())
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task else None

    def create_task(self, data: dict[str, Any]) -> TaskEntity:
        columns = _to_columns(data)
        with self._session_factory() as session:
            if columns.get("sort_order") is None:
                columns["sort_order"] = self._next_order(session, columns["date"].date())
            else:
                self._raise_order_floor(session, columns["date"].date(), columns["sort_order"])
            task = TaskModel(**columns)
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def update_task(self, task_id: int, data: dict[str, Any]) -> Optional[TaskEntity]:
        columns = _to_columns(data)
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None

            for key, value in columns.items():
                setattr(task, key, value)
            if "sort_order" in columns or "date" in columns:
                self._raise_order_floor(session, task.date.date(), task.sort_order)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def reorder_tasks(self, moves: list[dict[str, Any]]) -> list[TaskEntity]:
        if not moves:
            return []
        with self._session_factory() as session:
            tasks = session.scalars(
                select(TaskModel).where(TaskModel.id.in_([move["id"] for move in moves]))
            ).all()
            by_id = {task.id: task for task in tasks}
            moved = []
            for move in moves:
                task = by_id.get(move["id"])
                if task is None:
                    continue
                task.sort_order = move["order"]
                task.date = move["date"]
                self._raise_order_floor(session, task.date.date(), task.sort_order)
                moved.append(task)
            session.commit()
            for task in moved:
                session.refresh(task)
            return [_to_entity(task) for task in moved]

    def delete_task(self, task_id: int) -> bool:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return False
            session.delete(task)
            session.commit()
            return True

    def next_order_for_date(self, day: date) -> int:
        with self._session_factory() as session:
            order = self._next_order(session, day)
            session.commit()
            return order

    @staticmethod
    def _next_order(session: Session, day: date) -> int:
        # The counter row is bumped with one UPDATE so concurrent writers serialize on it.
        for _ in range(ORDER_RETRIES):
            result = session.execute(
                update(TaskDayOrderModel)
                .where(TaskDayOrderModel.day == day)
                .values(last_order=TaskDayOrderModel.last_order + 1)
            )
            if result.rowcount:
                return session.scalar(
                    select(TaskDayOrderModel.last_order).where(TaskDayOrderModel.day == day)
                )

            bounds = day_bounds(day)
            highest = session.scalar(
                select(func.max(TaskModel.sort_order)).where(
                    TaskModel.date.between(bounds.start, bounds.end)
                )
            )
            first_order = -1 if highest is None else highest
            first_order += 1
            try:
                with session.begin_nested():
                    session.add(TaskDayOrderModel(day=day, last_order=first_order))
                return first_order
            except IntegrityError:
                continue
        raise RuntimeError(f"Could not allocate an order for {day.isoformat()}")

    @staticmethod
    def _raise_order_floor(session: Session, day: date, order: int) -> None:
        session.execute(
            update(TaskDayOrderModel)
            .where(TaskDayOrderModel.day == day, TaskDayOrderModel.last_order < order)
            .values(last_order=order)
        )

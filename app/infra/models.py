from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text

from app.clock import utcnow

from .db import Base


class TaskModel(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_date_sort_order", "date", "sort_order"),)

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    date = Column(DateTime, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    priority = Column(String(10), nullable=False, default="medium")
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    recurrence_type = Column(String(20), nullable=False, default="none")
    recurrence_interval = Column(Integer, nullable=False, default=1)
    recurrence_end_date = Column(DateTime, nullable=True)
    recurrence_count = Column(Integer, nullable=True)
    recurrence_weekdays = Column(JSON, nullable=True)
    parent_task_id = Column(
        Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_recurring = Column(Boolean, nullable=False, default=False)


class TaskDayOrderModel(Base):
    __tablename__ = "task_day_orders"

    day = Column(Date, primary_key=True)
    last_order = Column(Integer, nullable=False)

from __future__ import annotations


class TaskError(Exception):
    """Base class for errors reported back to the request layer."""


class InvalidTask(TaskError):
    pass


class InvalidRule(InvalidTask):
    pass


class NotRecurring(TaskError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} is not recurring")
        self.task_id = task_id


class TaskNotFound(TaskError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id

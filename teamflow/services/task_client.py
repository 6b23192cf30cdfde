# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Typed adapter over the Task Store (``tasks`` and ``attachments`` collections)."""
from typing import Any, Optional

from teamflow.models.domain import Attachment, Task


class TaskClient:
    def __init__(self, tasks, attachments) -> None:
        self._tasks = tasks
        self._attachments = attachments

    # ── Tasks ──

    def get_task(self, task_id: int) -> Task:
        return Task.model_validate(self._tasks.get(task_id))

    def list_tasks(self, leader_id: Optional[int] = None,
                   assigned_to_id: Optional[int] = None) -> list[Task]:
        records = self._tasks.list(leader_id=leader_id, assigned_to_id=assigned_to_id)
        return [Task.model_validate(r) for r in records]

    def create_task(self, record: dict[str, Any]) -> Task:
        return Task.model_validate(self._tasks.create(record))

    def update_task(self, task: Task, patch: dict[str, Any]) -> Task:
        return Task.model_validate(
            self._tasks.update(task.id, patch, expected_version=task.version)
        )

    def delete_task(self, task_id: int) -> None:
        self._tasks.delete(task_id)

    # ── Attachment metadata ──

    def list_attachments(self, task_id: int) -> list[Attachment]:
        return [Attachment.model_validate(r) for r in self._attachments.list(task_id=task_id)]

    def get_attachment(self, attachment_id: int) -> Attachment:
        return Attachment.model_validate(self._attachments.get(attachment_id))

    def create_attachment(self, record: dict[str, Any]) -> Attachment:
        return Attachment.model_validate(self._attachments.create(record))

    def delete_attachment(self, attachment_id: int) -> None:
        self._attachments.delete(attachment_id)

    def ping(self) -> bool:
        return self._tasks.ping()

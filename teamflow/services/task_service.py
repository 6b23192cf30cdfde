# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Task writes and attachments.

Task writes touch only the Task Store, but who may make them is decided
against the caller's live role and the task's current leader/assignee.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Iterator, Optional

from teamflow.core.errors import (
    ConflictError,
    TeamflowError,
    UnauthorizedError,
    ValidationFailedError,
)
from teamflow.core.logging import get_logger
from teamflow.metrics.prometheus import OPERATIONS_TOTAL
from teamflow.models.domain import (
    Attachment,
    Comment,
    Decision,
    Principal,
    Role,
    Task,
    TaskAction,
    TaskPriority,
    TaskStatus,
)
from teamflow.services.access import load_actor
from teamflow.services.authorization import authorize_task_action, check_status_transition

logger = get_logger(__name__)


def _clean_file_name(file_name: str) -> str:
    """Reduce a client-supplied name to its last path component."""
    name = file_name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name in ("", ".", "..") or any(ord(ch) < 32 for ch in name):
        raise ValidationFailedError(
            f"Invalid file name '{file_name}'", reason="invalid_file_name",
        )
    return name


class TaskService:
    """Business logic for tasks, comments and attachments."""

    def __init__(self, accounts, teams, tasks, blobs, max_attachment_bytes: int) -> None:
        self._accounts = accounts
        self._teams = teams
        self._tasks = tasks
        self._blobs = blobs
        self._max_attachment_bytes = max_attachment_bytes

    @property
    def max_attachment_bytes(self) -> int:
        return self._max_attachment_bytes

    # ── Helpers ──

    def _roster_of(self, leader_id: int) -> list[int]:
        led = self._teams.list_teams(leader_id=leader_id)
        return led[0].members if led else []

    def _authorize(self, actor: Principal, task: Task, action: TaskAction) -> Decision:
        roster: list[int] = []
        if action == TaskAction.VIEW:
            roster = self._roster_of(task.leader_id)
        decision = authorize_task_action(actor, task, action, roster)
        if not decision.allowed:
            raise UnauthorizedError(
                f"Not allowed to {action.value} task {task.id}", reason=decision.reason,
            )
        return decision

    def _check_assignee(self, leader_id: int, assignee_id: Optional[int]) -> None:
        """An assignee must be active and belong to the team the task's leader runs."""
        if assignee_id is None or assignee_id == leader_id:
            return
        assignee = self._accounts.get_user(assignee_id)
        if not assignee.active:
            raise ConflictError(f"User {assignee_id} is inactive", reason="not_eligible")
        if assignee_id not in self._roster_of(leader_id):
            raise ConflictError(
                f"User {assignee_id} is not a member of the team led by {leader_id}",
                reason="assignee_not_in_team",
            )

    def _track(self, operation: str, outcome: str) -> None:
        OPERATIONS_TOTAL.labels(operation=operation, outcome=outcome).inc()

    # ── Tasks ──

    def create_task(self, principal: Principal, title: str, due_date: date,
                    description: str = "", priority: TaskPriority = TaskPriority.LOW,
                    status: TaskStatus = TaskStatus.TODO,
                    assigned_to_id: Optional[int] = None) -> Task:
        actor = load_actor(self._accounts, principal)
        if actor.role not in (Role.TEAM_LEADER, Role.ADMIN):
            raise UnauthorizedError("Only Team Leaders and Admins create tasks",
                                    reason="leader_role_required")
        self._check_assignee(actor.user_id, assigned_to_id)
        task = self._tasks.create_task({
            "title": title,
            "description": description,
            "leader_id": actor.user_id,
            "assigned_to_id": assigned_to_id,
            "status": status.value,
            "priority": priority.value,
            "due_date": due_date.isoformat(),
            "date_created": date.today().isoformat(),
            "comments": [],
        })
        self._track("create_task", "success")
        logger.info("Task created id=%s leader=%s assignee=%s", task.id, actor.user_id, assigned_to_id)
        return task

    def get_task(self, principal: Principal, task_id: int) -> Task:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        self._authorize(actor, task, TaskAction.VIEW)
        return task

    def permissions(self, principal: Principal, task_id: int) -> dict[str, Decision]:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        roster = self._roster_of(task.leader_id)
        return {
            action.value: authorize_task_action(actor, task, action, roster)
            for action in TaskAction
        }

    def edit_task(self, principal: Principal, task_id: int, changes: dict[str, Any]) -> Task:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        self._authorize(actor, task, TaskAction.EDIT)

        patch: dict[str, Any] = {}
        for field in ("title", "description"):
            if changes.get(field):
                patch[field] = changes[field]
        if changes.get("priority") is not None:
            patch["priority"] = TaskPriority(changes["priority"]).value
        if changes.get("due_date") is not None:
            patch["due_date"] = changes["due_date"].isoformat()
        status = changes.get("status")
        if status is not None and TaskStatus(status) != task.status:
            check_status_transition(task.status, TaskStatus(status))
            patch["status"] = TaskStatus(status).value
        if "assigned_to_id" in changes and changes["assigned_to_id"] != task.assigned_to_id:
            self._authorize(actor, task, TaskAction.ASSIGN)
            self._check_assignee(task.leader_id, changes["assigned_to_id"])
            patch["assigned_to_id"] = changes["assigned_to_id"]

        if not patch:
            return task
        updated = self._tasks.update_task(task, patch)
        self._track("edit_task", "success")
        return updated

    def delete_task(self, principal: Principal, task_id: int) -> None:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        self._authorize(actor, task, TaskAction.DELETE)
        attachments = self._tasks.list_attachments(task.id)
        self._tasks.delete_task(task.id)
        for attachment in attachments:
            try:
                self._tasks.delete_attachment(attachment.id)
                self._blobs.delete(attachment.object_name)
            except TeamflowError as exc:
                logger.warning("Attachment %s of deleted task %s not cleaned up: %s",
                               attachment.id, task.id, exc)
        self._track("delete_task", "success")
        logger.info("Task deleted id=%s by=%s", task.id, actor.user_id)

    def change_status(self, principal: Principal, task_id: int, status: TaskStatus) -> Task:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        self._authorize(actor, task, TaskAction.STATUS)
        check_status_transition(task.status, status)
        updated = self._tasks.update_task(task, {"status": status.value})
        self._track("change_task_status", "success")
        logger.info("Task %s status %s -> %s by %s", task.id, task.status.value, status.value,
                    actor.user_id)
        return updated

    def add_comment(self, principal: Principal, task_id: int, text: str) -> Task:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        self._authorize(actor, task, TaskAction.COMMENT)
        text = text.strip()
        if not text:
            raise ValidationFailedError("Comment is empty", reason="empty_comment")
        label = Role.TEAM_LEADER.value if actor.user_id == task.leader_id else Role.MEMBER.value
        entry = Comment(author_id=actor.user_id, author_label=label, text=text)
        comments = [c.model_dump(mode="json") for c in task.comments]
        comments.append(entry.model_dump(mode="json"))
        updated = self._tasks.update_task(task, {"comments": comments})
        self._track("add_comment", "success")
        return updated

    # ── Attachments ──

    def upload_attachment(self, principal: Principal, task_id: int, file_name: str,
                          content_type: str, content: bytes) -> Attachment:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        self._authorize(actor, task, TaskAction.ATTACH)
        if not content:
            raise ValidationFailedError("No file uploaded", reason="empty_upload")
        if len(content) > self._max_attachment_bytes:
            raise ValidationFailedError(
                f"Attachment exceeds {self._max_attachment_bytes} bytes", reason="too_large",
            )
        file_name = _clean_file_name(file_name)
        object_name = f"{task.id}/{uuid.uuid4()}_{file_name}"
        self._blobs.upload(object_name, content, content_type)
        try:
            attachment = self._tasks.create_attachment({
                "task_id": task.id,
                "file_name": file_name,
                "object_name": object_name,
                "content_type": content_type,
                "size": len(content),
                "uploaded_by": actor.user_id,
                "uploaded_at": datetime.now(timezone.utc).isoformat(),
            })
        except TeamflowError:
            self._blobs.delete(object_name)
            raise
        logger.info("Attachment %s uploaded to task %s (%d bytes)", attachment.id, task.id,
                    len(content))
        return attachment

    def list_attachments(self, principal: Principal, task_id: int) -> list[Attachment]:
        actor = load_actor(self._accounts, principal)
        task = self._tasks.get_task(task_id)
        self._authorize(actor, task, TaskAction.VIEW)
        return self._tasks.list_attachments(task.id)

    def open_attachment(self, principal: Principal,
                        attachment_id: int) -> tuple[Attachment, Iterator[bytes]]:
        actor = load_actor(self._accounts, principal)
        attachment = self._tasks.get_attachment(attachment_id)
        task = self._tasks.get_task(attachment.task_id)
        self._authorize(actor, task, TaskAction.VIEW)
        return attachment, self._blobs.download(attachment.object_name)

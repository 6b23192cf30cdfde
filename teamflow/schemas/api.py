# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
HTTP request and response bodies.
Used by the controllers only; services take and return domain models.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from teamflow.models.domain import Decision, Task, TaskPriority, TaskStatus, Team, User


# ── Team Schemas ──

class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Team name")
    description: str = Field(default="", max_length=2000)
    leader_id: int = Field(..., ge=1, description="Free, active Member to lead the team")

    @field_validator("name")
    @classmethod
    def normalise_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class TeamUpdateRequest(BaseModel):
    """Partial update model for PUT /api/v1/teams/{id}."""
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)


class MemberAddRequest(BaseModel):
    user_id: int = Field(..., ge=1)


class LeaderTransferRequest(BaseModel):
    user_id: int = Field(..., ge=1, description="Existing member who becomes leader")


class TeamDeleteResponse(BaseModel):
    team_id: int
    leader_id: int
    leader_demoted: bool


class LeaderTransferResponse(BaseModel):
    team: Team
    previous_leader_id: int
    previous_leader_demoted: bool


# ── Task Schemas ──

class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="", max_length=5000)
    due_date: date
    priority: TaskPriority = TaskPriority.LOW
    status: TaskStatus = TaskStatus.TODO
    assigned_to_id: Optional[int] = Field(default=None, ge=1)


class TaskUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are applied."""
    title: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)
    due_date: Optional[date] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    assigned_to_id: Optional[int] = Field(default=None, ge=1)


class StatusChangeRequest(BaseModel):
    status: TaskStatus


class CommentCreateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)


class TaskPermissionsResponse(BaseModel):
    task_id: int
    permissions: dict[str, Decision]


class TaskListResponse(BaseModel):
    total: int
    tasks: list[Task]


# ── User Schemas ──

class UserListResponse(BaseModel):
    total: int
    users: list[User]


# ── Errors ──

class ErrorResponse(BaseModel):
    error: str
    reason: Optional[str] = None
    detail: Optional[str] = None
    context: Optional[Any] = None
    request_id: Optional[str] = None


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse}
    for status in (401, 403, 404, 409, 422, 500, 503, 504)
}

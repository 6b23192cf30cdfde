# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain records and enums shared by every layer.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    MEMBER = "Member"
    TEAM_LEADER = "Team Leader"
    ADMIN = "Admin"


class TaskStatus(str, Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class TaskAction(str, Enum):
    VIEW = "view"
    SEARCH = "search"
    EDIT = "edit"
    DELETE = "delete"
    ASSIGN = "assign"
    STATUS = "status"
    COMMENT = "comment"
    ATTACH = "attach"


class User(BaseModel):
    """An account record as held by the Account Store."""
    id: int
    username: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.MEMBER
    active: bool = False
    version: int = 0


class Team(BaseModel):
    """A team record; membership edges are embedded in ``members``."""
    id: int
    name: str
    description: str = ""
    leader_id: int
    members: list[int] = Field(default_factory=list)
    created_on: date = Field(default_factory=date.today)
    version: int = 0

    def has_member(self, user_id: int) -> bool:
        return user_id in self.members


class Comment(BaseModel):
    author_id: int
    author_label: str
    text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Task(BaseModel):
    id: int
    title: str
    description: str = ""
    leader_id: int
    assigned_to_id: Optional[int] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.LOW
    due_date: date
    date_created: date = Field(default_factory=date.today)
    comments: list[Comment] = Field(default_factory=list)
    version: int = 0


class Attachment(BaseModel):
    """Attachment metadata; the bytes live in the blob store under ``object_name``."""
    id: int
    task_id: int
    file_name: str
    object_name: str
    content_type: str = "application/octet-stream"
    size: int = 0
    uploaded_by: int
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Principal(BaseModel):
    """Canonical caller identity, whatever claim encoding the token used."""
    user_id: int
    role: Role
    active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Decision(BaseModel):
    """Outcome of a task authorization check."""
    allowed: bool
    reason: str

    @classmethod
    def allow(cls, reason: str) -> "Decision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(allowed=False, reason=reason)

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Task CRUD, status, comments, permissions and attachments.
Routes only; all logic lives in TaskService / ReadProjector.
"""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from teamflow.core.dependencies import get_read_projector, get_task_service
from teamflow.core.errors import ValidationFailedError
from teamflow.core.security import get_principal
from teamflow.models.domain import Attachment, Principal, Task, TaskPriority, TaskStatus
from teamflow.schemas.api import (
    ERROR_RESPONSES,
    CommentCreateRequest,
    StatusChangeRequest,
    TaskCreateRequest,
    TaskListResponse,
    TaskPermissionsResponse,
    TaskUpdateRequest,
)
from teamflow.services.read_projector import ReadProjector
from teamflow.services.task_service import TaskService

router = APIRouter(prefix="/api/v1", tags=["Tasks"], responses=ERROR_RESPONSES)


@router.post("/tasks", status_code=201, response_model=Task)
def create_task(
    payload: TaskCreateRequest,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    return service.create_task(
        principal,
        title=payload.title,
        due_date=payload.due_date,
        description=payload.description,
        priority=payload.priority,
        status=payload.status,
        assigned_to_id=payload.assigned_to_id,
    )


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    as_leader: Optional[int] = Query(None),
    as_assignee: Optional[int] = Query(None),
    as_team: Optional[int] = Query(None),
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    principal: Principal = Depends(get_principal),
    projector: ReadProjector = Depends(get_read_projector),
):
    """Tasks for exactly one scope, ordered by due date ascending."""
    tasks = projector.visible_tasks(
        principal,
        as_leader=as_leader,
        as_assignee=as_assignee,
        as_team=as_team,
        status=status,
        priority=priority,
    )
    return TaskListResponse(total=len(tasks), tasks=tasks)


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(
    task_id: int,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    return service.get_task(principal, task_id)


@router.put("/tasks/{task_id}", response_model=Task)
def edit_task(
    task_id: int,
    payload: TaskUpdateRequest,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    return service.edit_task(principal, task_id, payload.model_dump(exclude_unset=True))


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    service.delete_task(principal, task_id)


@router.put("/tasks/{task_id}/status", response_model=Task)
def change_status(
    task_id: int,
    payload: StatusChangeRequest,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    return service.change_status(principal, task_id, payload.status)


@router.post("/tasks/{task_id}/comments", status_code=201, response_model=Task)
def add_comment(
    task_id: int,
    payload: CommentCreateRequest,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    return service.add_comment(principal, task_id, payload.text)


@router.get("/tasks/{task_id}/permissions", response_model=TaskPermissionsResponse)
def task_permissions(
    task_id: int,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    """Per-action allow/deny for the caller, for UI affordances."""
    return TaskPermissionsResponse(task_id=task_id, permissions=service.permissions(principal, task_id))


# ── Attachments ──

@router.post("/tasks/{task_id}/attachments", status_code=201, response_model=Attachment)
async def upload_attachment(
    task_id: int,
    request: Request,
    file_name: str = Query(..., min_length=1, max_length=255),
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    """Upload the raw request body as an attachment named ``file_name``."""
    content = await _read_body(request, service.max_attachment_bytes)
    content_type = request.headers.get("content-type") or "application/octet-stream"
    return await run_in_threadpool(
        service.upload_attachment, principal, task_id, file_name, content_type, content,
    )


@router.get("/tasks/{task_id}/attachments", response_model=list[Attachment])
def list_attachments(
    task_id: int,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    return service.list_attachments(principal, task_id)


@router.get("/attachments/{attachment_id}")
def download_attachment(
    attachment_id: int,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    attachment, chunks = service.open_attachment(principal, attachment_id)
    return StreamingResponse(
        chunks,
        media_type=attachment.content_type,
        headers={"Content-Disposition": _content_disposition(attachment.file_name)},
    )


def _too_large(limit: int) -> ValidationFailedError:
    return ValidationFailedError(f"Attachment exceeds {limit} bytes", reason="too_large")


async def _read_body(request: Request, limit: int) -> bytes:
    """Read the request body, stopping as soon as it passes ``limit`` bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise _too_large(limit)
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise _too_large(limit)
    return bytes(body)


def _content_disposition(file_name: str) -> str:
    """Latin-1 safe header with an ASCII fallback plus the RFC 5987 UTF-8 form."""
    fallback = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in '"\\' else "_" for ch in file_name
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"

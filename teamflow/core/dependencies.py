# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Wiring of store backends, adapters and services for FastAPI `Depends`.
"""

from teamflow.core.config import settings
from teamflow.repositories.blob_repository import InMemoryBlobRepository
from teamflow.repositories.record_repository import InMemoryRecordRepository
from teamflow.services.account_client import AccountClient
from teamflow.services.blob_client import BlobStoreClient
from teamflow.services.identity import HttpIdentityVerifier, StaticIdentityVerifier
from teamflow.services.orchestrator import ConsistencyOrchestrator
from teamflow.services.read_projector import ReadProjector
from teamflow.services.reconciler import ConsistencyReconciler
from teamflow.services.store_client import HttpRecordStore
from teamflow.services.task_client import TaskClient
from teamflow.services.task_service import TaskService
from teamflow.services.team_client import TeamClient


def _build_backends():
    if settings.STORE_BACKEND == "http":
        return (
            HttpRecordStore("account", settings.ACCOUNT_SERVICE_URL, "users", settings.STORE_TIMEOUT),
            HttpRecordStore("team", settings.TEAM_SERVICE_URL, "teams", settings.STORE_TIMEOUT),
            HttpRecordStore("task", settings.TASK_SERVICE_URL, "tasks", settings.STORE_TIMEOUT),
            HttpRecordStore("task", settings.TASK_SERVICE_URL, "attachments", settings.STORE_TIMEOUT),
            BlobStoreClient(settings.BLOB_SERVICE_URL, settings.BLOB_TIMEOUT),
        )
    return (
        InMemoryRecordRepository("users"),
        InMemoryRecordRepository("teams"),
        InMemoryRecordRepository("tasks"),
        InMemoryRecordRepository("attachments"),
        InMemoryBlobRepository(),
    )


def _build_verifier():
    if settings.IDENTITY_BACKEND == "http":
        return HttpIdentityVerifier(settings.IDENTITY_SERVICE_URL, settings.IDENTITY_TIMEOUT)
    return StaticIdentityVerifier(settings.STATIC_TOKENS)


# ── Singleton backends (in-memory stores or HTTP clients) ──
_users, _teams, _tasks, _attachments, _blobs = _build_backends()
_verifier = _build_verifier()

# ── Store adapters ──
_account_client = AccountClient(_users)
_team_client = TeamClient(_teams)
_task_client = TaskClient(_tasks, _attachments)

# ── Services ──
_orchestrator = ConsistencyOrchestrator(_account_client, _team_client)
_task_service = TaskService(
    _account_client, _team_client, _task_client, _blobs, settings.MAX_ATTACHMENT_BYTES,
)
_read_projector = ReadProjector(_account_client, _team_client, _task_client)
_reconciler = ConsistencyReconciler(_account_client, _team_client)


# ── Depends() providers ──
def get_orchestrator() -> ConsistencyOrchestrator:
    return _orchestrator


def get_task_service() -> TaskService:
    return _task_service


def get_read_projector() -> ReadProjector:
    return _read_projector


def get_reconciler() -> ConsistencyReconciler:
    return _reconciler


def get_identity_verifier():
    return _verifier


def get_backends() -> dict:
    return {
        "users": _users,
        "teams": _teams,
        "tasks": _tasks,
        "attachments": _attachments,
        "blobs": _blobs,
    }


def close_clients() -> None:
    for backend in (*get_backends().values(), _verifier):
        close = getattr(backend, "close", None)
        if close is not None:
            close()

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Shared fixtures: fresh in-memory stores per test, wrapped so that any store
call can be made to fail, time out, or time out after taking effect.
"""

from datetime import date

import pytest

from teamflow.core.errors import StoreTimeoutError, StoreUnavailableError
from teamflow.models.domain import Principal, Role
from teamflow.repositories.blob_repository import InMemoryBlobRepository
from teamflow.repositories.record_repository import InMemoryRecordRepository
from teamflow.services.account_client import AccountClient
from teamflow.services.orchestrator import ConsistencyOrchestrator
from teamflow.services.read_projector import ReadProjector
from teamflow.services.reconciler import ConsistencyReconciler
from teamflow.services.task_client import TaskClient
from teamflow.services.task_service import TaskService
from teamflow.services.team_client import TeamClient

ADMIN_ID = 1


class _Fault:
    def __init__(self, method, error, times, apply_first, when):
        self.method = method
        self.error = error
        self.remaining = times
        self.apply_first = apply_first
        self.when = when


class FlakyBackend:
    """Record-store wrapper that injects failures on chosen calls.

    ``apply_first=True`` lets the call reach the store before the error is
    raised, which is what a timeout on a slow-but-successful write looks like.
    """

    WRAPPED = ("get", "list", "create", "update", "delete")

    def __init__(self, inner):
        self.inner = inner
        self.calls: list[str] = []
        self._faults: list[_Fault] = []

    def fail(self, method, error=None, times=1, apply_first=False, when=None):
        error = error or StoreUnavailableError(f"{self.inner.name} is down", store=self.inner.name)
        self._faults.append(_Fault(method, error, times, apply_first, when))
        return self

    def timeout(self, method, times=1, apply_first=False, when=None):
        error = StoreTimeoutError(f"{self.inner.name} timed out", store=self.inner.name)
        return self.fail(method, error, times=times, apply_first=apply_first, when=when)

    def heal(self):
        self._faults.clear()

    def _fault_for(self, method, args, kwargs):
        for fault in self._faults:
            if fault.method != method or fault.remaining == 0:
                continue
            if fault.when is not None and not fault.when(*args, **kwargs):
                continue
            fault.remaining -= 1
            return fault
        return None

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if name not in self.WRAPPED:
            return attr

        def call(*args, **kwargs):
            self.calls.append(name)
            fault = self._fault_for(name, args, kwargs)
            if fault is None:
                return attr(*args, **kwargs)
            if fault.apply_first:
                attr(*args, **kwargs)
            raise fault.error

        return call


def patch_sets(field, value=None):
    """``when`` predicate matching ``update(id, patch)`` calls that touch ``field``."""
    def match(record_id, patch, *args, **kwargs):
        return field in patch and (value is None or patch[field] == value)
    return match


# ── Stores ──

@pytest.fixture
def users():
    return FlakyBackend(InMemoryRecordRepository("users"))


@pytest.fixture
def teams():
    return FlakyBackend(InMemoryRecordRepository("teams"))


@pytest.fixture
def tasks():
    return FlakyBackend(InMemoryRecordRepository("tasks"))


@pytest.fixture
def attachments():
    return FlakyBackend(InMemoryRecordRepository("attachments"))


@pytest.fixture
def blobs():
    return InMemoryBlobRepository()


# ── Services ──

@pytest.fixture
def accounts(users):
    return AccountClient(users)


@pytest.fixture
def team_client(teams):
    return TeamClient(teams)


@pytest.fixture
def task_client(tasks, attachments):
    return TaskClient(tasks, attachments)


@pytest.fixture
def orchestrator(accounts, team_client):
    return ConsistencyOrchestrator(accounts, team_client)


@pytest.fixture
def reconciler(accounts, team_client):
    return ConsistencyReconciler(accounts, team_client)


@pytest.fixture
def task_service(accounts, team_client, task_client, blobs):
    return TaskService(accounts, team_client, task_client, blobs, max_attachment_bytes=1024)


@pytest.fixture
def projector(accounts, team_client, task_client):
    return ReadProjector(accounts, team_client, task_client)


# ── Seeding ──

@pytest.fixture
def make_user(users):
    def _make(user_id, role=Role.MEMBER, active=True):
        users.inner.create({
            "id": user_id,
            "username": f"user{user_id}",
            "email": f"user{user_id}@teamflow.local",
            "first_name": "User",
            "last_name": str(user_id),
            "role": role.value,
            "active": active,
        })
        return Principal(user_id=user_id, role=role, active=active)
    return _make


@pytest.fixture
def make_team(teams):
    def _make(team_id, leader_id, members=None, name=None):
        teams.inner.create({
            "id": team_id,
            "name": name or f"Team {team_id}",
            "description": "",
            "leader_id": leader_id,
            "members": members if members is not None else [leader_id],
            "created_on": date(2025, 1, 1).isoformat(),
        })
        return team_id
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(ADMIN_ID, Role.ADMIN)

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Account role and status transitions, user listings.
Routes only; all logic lives in the orchestrator / read projector.
"""

from fastapi import APIRouter, Depends

from teamflow.core.dependencies import get_orchestrator, get_read_projector
from teamflow.core.security import get_principal
from teamflow.models.domain import Principal, User
from teamflow.schemas.api import ERROR_RESPONSES, UserListResponse
from teamflow.services.orchestrator import ConsistencyOrchestrator
from teamflow.services.read_projector import ReadProjector

router = APIRouter(prefix="/api/v1", tags=["Users"], responses=ERROR_RESPONSES)


@router.get("/users", response_model=UserListResponse)
def list_users(
    principal: Principal = Depends(get_principal),
    projector: ReadProjector = Depends(get_read_projector),
):
    users = projector.list_users(principal)
    return UserListResponse(total=len(users), users=users)


@router.get("/users/eligible", response_model=UserListResponse)
def list_eligible_users(
    principal: Principal = Depends(get_principal),
    projector: ReadProjector = Depends(get_read_projector),
):
    """Active Members who neither lead nor belong to a team."""
    users = projector.eligible_users(principal)
    return UserListResponse(total=len(users), users=users)


@router.put("/users/{user_id}/promote", response_model=User)
def promote_member(
    user_id: int,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.promote_member(principal, user_id)


@router.put("/users/{user_id}/demote", response_model=User)
def demote_member(
    user_id: int,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.demote_member(principal, user_id)


@router.put("/users/{user_id}/activate", response_model=User)
def activate_user(
    user_id: int,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.activate_user(principal, user_id)


@router.put("/users/{user_id}/deactivate", response_model=User)
def deactivate_user(
    user_id: int,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    """Remove the user from their team (if any), then deactivate the account."""
    return orchestrator.deactivate_user(principal, user_id)

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Team lifecycle and membership.
Routes only; all logic lives in the orchestrator / read projector.
"""

from fastapi import APIRouter, Depends

from teamflow.core.dependencies import get_orchestrator, get_read_projector
from teamflow.core.security import get_principal
from teamflow.models.domain import Principal, Team, User
from teamflow.schemas.api import (
    ERROR_RESPONSES,
    LeaderTransferRequest,
    LeaderTransferResponse,
    MemberAddRequest,
    TeamCreateRequest,
    TeamDeleteResponse,
    TeamUpdateRequest,
)
from teamflow.services.orchestrator import ConsistencyOrchestrator
from teamflow.services.read_projector import ReadProjector

router = APIRouter(prefix="/api/v1", tags=["Teams"], responses=ERROR_RESPONSES)


@router.post("/teams", status_code=201, response_model=Team)
def create_team(
    payload: TeamCreateRequest,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    """Create a team and promote its leader; rolled back if promotion fails."""
    return orchestrator.create_team_with_leader(
        principal, payload.name, payload.description, payload.leader_id,
    )


@router.get("/teams", response_model=list[Team])
def list_teams(
    principal: Principal = Depends(get_principal),
    projector: ReadProjector = Depends(get_read_projector),
):
    return projector.list_teams(principal)


@router.get("/teams/mine", response_model=list[Team])
def my_teams(
    principal: Principal = Depends(get_principal),
    projector: ReadProjector = Depends(get_read_projector),
):
    """All teams for an Admin; otherwise the caller's own team, if any."""
    return projector.my_teams(principal)


@router.get("/teams/{team_id}", response_model=Team)
def get_team(
    team_id: int,
    principal: Principal = Depends(get_principal),
    projector: ReadProjector = Depends(get_read_projector),
):
    return projector.get_team(principal, team_id)


@router.get("/teams/{team_id}/roster", response_model=list[User])
def team_roster(
    team_id: int,
    principal: Principal = Depends(get_principal),
    projector: ReadProjector = Depends(get_read_projector),
):
    return projector.team_roster(principal, team_id)


@router.put("/teams/{team_id}", response_model=Team)
def update_team(
    team_id: int,
    payload: TeamUpdateRequest,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.update_team_info(
        principal, team_id, name=payload.name, description=payload.description,
    )


@router.delete("/teams/{team_id}", response_model=TeamDeleteResponse)
def delete_team(
    team_id: int,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    """Delete the team, then demote its leader (deferred to reconcile on failure)."""
    return orchestrator.delete_team(principal, team_id)


@router.put("/teams/{team_id}/leader", response_model=LeaderTransferResponse)
def transfer_leadership(
    team_id: int,
    payload: LeaderTransferRequest,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.transfer_leadership(principal, team_id, payload.user_id)


@router.post("/teams/{team_id}/members", response_model=Team)
def add_member(
    team_id: int,
    payload: MemberAddRequest,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.add_member(principal, team_id, payload.user_id)


@router.delete("/teams/{team_id}/members/{user_id}", response_model=Team)
def remove_member(
    team_id: int,
    user_id: int,
    principal: Principal = Depends(get_principal),
    orchestrator: ConsistencyOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.remove_member(principal, team_id, user_id)

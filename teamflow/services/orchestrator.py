# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Consistency orchestration across the Account and Team stores.

Each public method turns one user intent into an ordered sequence of store
calls. Steps that can be undone run inside a ``Saga``; steps whose undo would
be unsafe (anything after a visible delete) run forward-only and are left to
``ConsistencyReconciler`` when they fail. No in-process state is kept between
calls, so any number of instances may run side by side.
"""

from typing import Any, Optional

from teamflow.core.errors import (
    ConflictError,
    NotFoundError,
    TeamflowError,
    ValidationFailedError,
)
from teamflow.core.logging import get_logger
from teamflow.metrics.prometheus import DEFERRED_REPAIRS_TOTAL, OPERATIONS_TOTAL
from teamflow.models.domain import Principal, Role, Team, User
from teamflow.services.access import require_admin, require_admin_or_leader
from teamflow.services.account_client import AccountClient
from teamflow.services.invariants import (
    LEADER_IS_MEMBER,
    ROLE_MATCHES_LEADERSHIP,
    SINGLE_MEMBERSHIP,
    ensure_free_member,
    ensure_not_leader,
    ensure_unique_name,
    team_of,
    teams_led_by,
)
from teamflow.services.saga import Saga
from teamflow.services.team_client import TeamClient

logger = get_logger(__name__)


def _outcome(exc: Exception) -> str:
    return getattr(exc, "kind", "internal_error")


class ConsistencyOrchestrator:
    """Business operations that must keep accounts and teams in agreement."""

    def __init__(self, accounts: AccountClient, teams: TeamClient) -> None:
        self._accounts = accounts
        self._teams = teams

    def _run(self, operation: str, fn, *args, **kwargs):
        try:
            result = fn(*args, **kwargs)
        except TeamflowError as exc:
            OPERATIONS_TOTAL.labels(operation=operation, outcome=_outcome(exc)).inc()
            raise
        OPERATIONS_TOTAL.labels(operation=operation, outcome="success").inc()
        return result

    # ── Team lifecycle ──

    def create_team_with_leader(self, principal: Principal, name: str,
                                description: str, candidate_id: int) -> Team:
        return self._run("create_team_with_leader", self._create_team_with_leader,
                         principal, name, description, candidate_id)

    def _create_team_with_leader(self, principal: Principal, name: str,
                                 description: str, candidate_id: int) -> Team:
        require_admin(self._accounts, principal)
        candidate = self._accounts.get_user(candidate_id)
        teams = self._teams.list_teams()
        ensure_unique_name(name, teams)
        ensure_free_member(candidate, teams, "lead a team", busy_reason="not_eligible")

        saga = Saga("create_team_with_leader")
        team = saga.step(
            "create_team",
            lambda: self._teams.create_team(name, description, candidate_id),
            compensation=lambda created: self._discard_team(created, name, candidate_id),
            invariants=(ROLE_MATCHES_LEADERSHIP,),
        )
        saga.step(
            "promote_leader",
            lambda: self._accounts.set_role(candidate_id, Role.TEAM_LEADER),
            compensation=lambda _: self._accounts.set_role(candidate_id, candidate.role),
            invariants=(ROLE_MATCHES_LEADERSHIP,),
        )
        logger.info("Team created id=%s name=%s leader=%s", team.id, team.name, candidate_id,
                    extra={"operation": "create_team_with_leader"})
        return team

    def _discard_team(self, created: Optional[Team], name: str, leader_id: int) -> None:
        """Delete the team a failed create left behind, found by id or by (name, leader)."""
        if created is not None:
            doomed = [created.id]
        else:
            doomed = [t.id for t in self._teams.list_teams(leader_id=leader_id) if t.name == name]
        for team_id in doomed:
            try:
                self._teams.delete_team(team_id)
            except NotFoundError:
                pass

    def delete_team(self, principal: Principal, team_id: int) -> dict[str, Any]:
        return self._run("delete_team", self._delete_team, principal, team_id)

    def _delete_team(self, principal: Principal, team_id: int) -> dict[str, Any]:
        require_admin(self._accounts, principal)
        team = self._teams.get_team(team_id)

        # Team goes first: a leftover Team Leader label is repairable, a
        # leaderless team is not.
        self._teams.delete_team(team.id)
        demoted = self._demote_former_leader("delete_team", team.leader_id)
        logger.info("Team deleted id=%s leader=%s demoted=%s", team.id, team.leader_id, demoted,
                    extra={"operation": "delete_team"})
        return {"team_id": team.id, "leader_id": team.leader_id, "leader_demoted": demoted}

    def _demote_former_leader(self, operation: str, user_id: int) -> bool:
        """Forward-only demotion; on failure the reconciler finishes the job."""
        try:
            user = self._accounts.get_user(user_id)
            if user.role != Role.TEAM_LEADER:
                return True
            if self._teams.list_teams(leader_id=user_id):
                return True
            self._accounts.set_role(user_id, Role.MEMBER)
            return True
        except TeamflowError as exc:
            DEFERRED_REPAIRS_TOTAL.labels(operation=operation).inc()
            logger.warning(
                "Demotion of former leader %s deferred: %s", user_id, exc,
                extra={"operation": operation, "step": "demote_leader",
                       "invariants": [ROLE_MATCHES_LEADERSHIP]},
            )
            return False

    def update_team_info(self, principal: Principal, team_id: int,
                         name: Optional[str] = None,
                         description: Optional[str] = None) -> Team:
        return self._run("update_team_info", self._update_team_info,
                         principal, team_id, name, description)

    def _update_team_info(self, principal: Principal, team_id: int,
                          name: Optional[str], description: Optional[str]) -> Team:
        team = self._teams.get_team(team_id)
        require_admin_or_leader(self._accounts, principal, team.leader_id)
        fields: dict[str, Any] = {}
        if name:
            ensure_unique_name(name, self._teams.list_teams(), exclude_id=team.id)
            fields["name"] = name
        if description:
            fields["description"] = description
        if not fields:
            return team
        return self._teams.update_team(team, **fields)

    def transfer_leadership(self, principal: Principal, team_id: int,
                            new_leader_id: int) -> dict[str, Any]:
        return self._run("transfer_leadership", self._transfer_leadership,
                         principal, team_id, new_leader_id)

    def _transfer_leadership(self, principal: Principal, team_id: int,
                             new_leader_id: int) -> dict[str, Any]:
        require_admin(self._accounts, principal)
        team = self._teams.get_team(team_id)
        old_leader_id = team.leader_id
        if new_leader_id == old_leader_id:
            raise ConflictError(f"User {new_leader_id} already leads team {team.id}",
                                reason="already_leader")
        if not team.has_member(new_leader_id):
            raise ConflictError(f"User {new_leader_id} is not a member of team {team.id}",
                                reason="not_member")
        candidate = self._accounts.get_user(new_leader_id)
        if not candidate.active or candidate.role != Role.MEMBER:
            raise ConflictError(f"User {new_leader_id} must be an active Member to lead",
                                reason="not_eligible")

        saga = Saga("transfer_leadership")
        updated = saga.step(
            "reassign_leader",
            lambda: self._teams.update_team(team, leader_id=new_leader_id),
            compensation=lambda _: self._restore_leader(team.id, old_leader_id),
            invariants=(ROLE_MATCHES_LEADERSHIP, LEADER_IS_MEMBER),
        )
        saga.step(
            "promote_new_leader",
            lambda: self._accounts.set_role(new_leader_id, Role.TEAM_LEADER),
            compensation=lambda _: self._accounts.set_role(new_leader_id, candidate.role),
            invariants=(ROLE_MATCHES_LEADERSHIP,),
        )
        demoted = self._demote_former_leader("transfer_leadership", old_leader_id)
        logger.info("Leadership of team %s moved %s -> %s", team.id, old_leader_id, new_leader_id,
                    extra={"operation": "transfer_leadership"})
        return {"team": updated, "previous_leader_id": old_leader_id,
                "previous_leader_demoted": demoted}

    def _restore_leader(self, team_id: int, leader_id: int) -> None:
        team = self._teams.get_team(team_id)
        if team.leader_id != leader_id:
            self._teams.update_team(team, leader_id=leader_id)

    # ── Membership ──

    def add_member(self, principal: Principal, team_id: int, user_id: int) -> Team:
        return self._run("add_member", self._add_member, principal, team_id, user_id)

    def _add_member(self, principal: Principal, team_id: int, user_id: int) -> Team:
        team = self._teams.get_team(team_id)
        require_admin_or_leader(self._accounts, principal, team.leader_id)
        user = self._accounts.get_user(user_id)
        ensure_free_member(user, self._teams.list_teams(), "join a team")
        updated = self._teams.set_members(team, team.members + [user_id])
        logger.info("User %s added to team %s", user_id, team.id, extra={"operation": "add_member"})
        return updated

    def remove_member(self, principal: Principal, team_id: int, user_id: int) -> Team:
        return self._run("remove_member", self._remove_member, principal, team_id, user_id)

    def _remove_member(self, principal: Principal, team_id: int, user_id: int) -> Team:
        team = self._teams.get_team(team_id)
        require_admin_or_leader(self._accounts, principal, team.leader_id)
        ensure_not_leader(team, user_id)
        if not team.has_member(user_id):
            raise NotFoundError(f"User {user_id} is not a member of team {team.id}",
                                reason="not_member")
        updated = self._teams.set_members(team, [m for m in team.members if m != user_id])
        logger.info("User %s removed from team %s", user_id, team.id,
                    extra={"operation": "remove_member"})
        return updated

    def _restore_membership(self, team_id: int, user_id: int) -> None:
        team = self._teams.get_team(team_id)
        if not team.has_member(user_id):
            self._teams.set_members(team, team.members + [user_id])

    # ── Account status and role ──

    def deactivate_user(self, principal: Principal, user_id: int) -> User:
        return self._run("deactivate_user", self._deactivate_user, principal, user_id)

    def _deactivate_user(self, principal: Principal, user_id: int) -> User:
        require_admin(self._accounts, principal)
        user = self._accounts.get_user(user_id)
        teams = self._teams.list_teams()
        led = teams_led_by(user_id, teams)
        if led:
            raise ConflictError(
                f"User {user_id} leads team {led[0].id}; delete the team or transfer "
                f"leadership before deactivating",
                reason="leader_deactivation",
                detail={"team_id": led[0].id},
            )

        saga = Saga("deactivate_user")
        team = team_of(user_id, teams)
        if team is not None:
            # Membership goes first so a failure leaves an active non-member.
            saga.step(
                "remove_membership",
                lambda: self._teams.set_members(team, [m for m in team.members if m != user_id]),
                compensation=lambda _: self._restore_membership(team.id, user_id),
                invariants=(SINGLE_MEMBERSHIP,),
            )
        updated = saga.step(
            "deactivate_account",
            lambda: self._accounts.set_active(user_id, False),
            compensation=lambda _: self._accounts.set_active(user_id, user.active),
        )
        logger.info("User %s deactivated (left team %s)", user_id, team.id if team else None,
                    extra={"operation": "deactivate_user"})
        return updated

    def activate_user(self, principal: Principal, user_id: int) -> User:
        return self._run("activate_user", self._activate_user, principal, user_id)

    def _activate_user(self, principal: Principal, user_id: int) -> User:
        require_admin(self._accounts, principal)
        user = self._accounts.get_user(user_id)
        if user.active:
            return user
        return self._accounts.set_active(user_id, True)

    def promote_member(self, principal: Principal, user_id: int) -> User:
        return self._run("promote_member", self._promote_member, principal, user_id)

    def _promote_member(self, principal: Principal, user_id: int) -> User:
        require_admin(self._accounts, principal)
        user = self._accounts.get_user(user_id)
        if user.role == Role.TEAM_LEADER:
            raise ConflictError(f"User {user_id} is already a Team Leader", reason="already_leader")
        if user.role != Role.MEMBER or not user.active:
            raise ConflictError(f"User {user_id} must be an active Member to be promoted",
                                reason="not_eligible")
        led = self._teams.list_teams(leader_id=user_id)
        if len(led) != 1:
            raise ConflictError(
                f"User {user_id} leads no team; create a team with them as leader instead",
                reason="no_team_led",
            )
        return self._accounts.set_role(user_id, Role.TEAM_LEADER)

    def demote_member(self, principal: Principal, user_id: int) -> User:
        return self._run("demote_member", self._demote_member, principal, user_id)

    def _demote_member(self, principal: Principal, user_id: int) -> User:
        require_admin(self._accounts, principal)
        user = self._accounts.get_user(user_id)
        if user.role == Role.ADMIN:
            raise ValidationFailedError(f"User {user_id} is an Admin, not a Team Leader",
                                        reason="not_team_leader")
        if user.role == Role.MEMBER:
            return user
        led = self._teams.list_teams(leader_id=user_id)
        if led:
            raise ConflictError(
                f"User {user_id} still leads team {led[0].id}; delete the team or transfer "
                f"leadership first",
                reason="leader_demotion",
                detail={"team_id": led[0].id},
            )
        return self._accounts.set_role(user_id, Role.MEMBER)

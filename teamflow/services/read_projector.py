# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: composite read-side queries.

Combines the caller's live identity with Team Store and Task Store reads.
Nothing is cached; "who is busy" is recomputed from current memberships on
every call.
"""

from typing import Optional

from teamflow.core.errors import UnauthorizedError, ValidationFailedError
from teamflow.models.domain import Principal, Role, Task, TaskPriority, TaskStatus, Team, User
from teamflow.services.access import load_actor
from teamflow.services.invariants import free_members


def _ordered(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: (t.due_date, t.id))


class ReadProjector:
    def __init__(self, accounts, teams, tasks) -> None:
        self._accounts = accounts
        self._teams = teams
        self._tasks = tasks

    # ── Teams ──

    def my_teams(self, principal: Principal) -> list[Team]:
        actor = load_actor(self._accounts, principal)
        teams = self._teams.list_teams()
        if actor.role == Role.ADMIN:
            return teams
        return [t for t in teams if t.has_member(actor.user_id)]

    def list_teams(self, principal: Principal) -> list[Team]:
        load_actor(self._accounts, principal)
        return self._teams.list_teams()

    def get_team(self, principal: Principal, team_id: int) -> Team:
        load_actor(self._accounts, principal)
        return self._teams.get_team(team_id)

    def team_roster(self, principal: Principal, team_id: int) -> list[User]:
        load_actor(self._accounts, principal)
        team = self._teams.get_team(team_id)
        return [u for u in self._accounts.list_users() if team.has_member(u.id)]

    # ── Users ──

    def list_users(self, principal: Principal) -> list[User]:
        load_actor(self._accounts, principal)
        return self._accounts.list_users()

    def eligible_users(self, principal: Principal) -> list[User]:
        """Active Members free to lead or join a team."""
        actor = load_actor(self._accounts, principal)
        if actor.role not in (Role.ADMIN, Role.TEAM_LEADER):
            raise UnauthorizedError("Only Admins and Team Leaders may list eligible users",
                                    reason="leader_role_required")
        return free_members(self._accounts.list_users(), self._teams.list_teams())

    # ── Tasks ──

    def visible_tasks(
        self,
        principal: Principal,
        as_leader: Optional[int] = None,
        as_assignee: Optional[int] = None,
        as_team: Optional[int] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
    ) -> list[Task]:
        """Tasks for exactly one scope, sorted by due date then id."""
        selectors = [s for s in (as_leader, as_assignee, as_team) if s is not None]
        if not selectors:
            raise ValidationFailedError(
                "A scope is required: as_leader, as_assignee or as_team", reason="scope_required",
            )
        if len(selectors) > 1:
            raise ValidationFailedError(
                "Exactly one of as_leader, as_assignee or as_team may be given",
                reason="ambiguous_scope",
            )
        actor = load_actor(self._accounts, principal)
        is_admin = actor.role == Role.ADMIN

        if as_leader is not None:
            if not is_admin and as_leader != actor.user_id:
                raise UnauthorizedError("Cannot list another leader's tasks", reason="scope_denied")
            tasks = self._tasks.list_tasks(leader_id=as_leader)
        elif as_assignee is not None:
            if not is_admin and as_assignee != actor.user_id:
                led = self._teams.list_teams(leader_id=actor.user_id)
                if not any(t.has_member(as_assignee) for t in led):
                    raise UnauthorizedError("Cannot list tasks of a user outside your team",
                                            reason="scope_denied")
            tasks = self._tasks.list_tasks(assigned_to_id=as_assignee)
        else:
            team = self._teams.get_team(as_team)
            if not is_admin and not team.has_member(actor.user_id):
                raise UnauthorizedError("Cannot list tasks of a team you are not in",
                                        reason="scope_denied")
            tasks = self._tasks.list_tasks(leader_id=team.leader_id)

        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        if priority is not None:
            tasks = [t for t in tasks if t.priority == priority]
        return _ordered(tasks)

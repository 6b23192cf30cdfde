# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Consistency rules shared by the orchestrator, the read side and the audit.

Every helper here is a pure function over store snapshots; nothing caches
who is "busy"; membership is always recomputed from the current teams.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

from teamflow.core.errors import ConflictError
from teamflow.models.domain import Role, Team, User

LEADER_IS_MEMBER = "leader_is_member"
NON_EMPTY_TEAM = "non_empty_team"
SINGLE_MEMBERSHIP = "single_membership"
ROLE_MATCHES_LEADERSHIP = "role_matches_leadership"

ALL_RULES = (LEADER_IS_MEMBER, NON_EMPTY_TEAM, SINGLE_MEMBERSHIP, ROLE_MATCHES_LEADERSHIP)


class Violation(BaseModel):
    rule: str
    subject: str
    detail: str


# ── Derived views ──

def busy_user_ids(teams: Iterable[Team]) -> set[int]:
    busy: set[int] = set()
    for team in teams:
        busy.update(team.members)
    return busy


def team_of(user_id: int, teams: Iterable[Team]) -> Optional[Team]:
    for team in teams:
        if team.has_member(user_id):
            return team
    return None


def teams_led_by(user_id: int, teams: Iterable[Team]) -> list[Team]:
    return [t for t in teams if t.leader_id == user_id]


def free_members(users: Iterable[User], teams: list[Team]) -> list[User]:
    """Active Members who neither lead nor belong to any team."""
    busy = busy_user_ids(teams) | {t.leader_id for t in teams}
    return [u for u in users if u.role == Role.MEMBER and u.active and u.id not in busy]


# ── Guards ──

def ensure_free_member(user: User, teams: list[Team], action: str,
                       busy_reason: str = "already_member") -> None:
    """Raise ConflictError(not_eligible) unless ``user`` is a free active Member."""
    if not user.active:
        raise ConflictError(f"User {user.id} is inactive and cannot {action}", reason="not_eligible")
    if user.role != Role.MEMBER:
        raise ConflictError(
            f"User {user.id} has role '{user.role.value}'; only Members can {action}",
            reason="not_eligible",
        )
    if teams_led_by(user.id, teams):
        raise ConflictError(f"User {user.id} already leads a team", reason="not_eligible")
    current = team_of(user.id, teams)
    if current is not None:
        raise ConflictError(
            f"User {user.id} already belongs to team {current.id}",
            reason=busy_reason,
            detail={"team_id": current.id},
        )


def ensure_not_leader(team: Team, user_id: int) -> None:
    if team.leader_id == user_id:
        raise ConflictError(
            f"User {user_id} leads team {team.id}; transfer leadership or delete the team first",
            reason="leader_removal",
        )


def ensure_unique_name(name: str, teams: Iterable[Team], exclude_id: Optional[int] = None) -> None:
    wanted = name.strip().lower()
    for team in teams:
        if team.id != exclude_id and team.name.strip().lower() == wanted:
            raise ConflictError(f"A team named '{name}' already exists", reason="already_exists")


# ── Audit ──

def find_violations(users: Iterable[User], teams: list[Team]) -> list[Violation]:
    """Scan snapshots of both stores for every broken consistency rule."""
    violations: list[Violation] = []
    seen: dict[int, int] = {}

    for team in teams:
        if not team.members:
            violations.append(Violation(
                rule=NON_EMPTY_TEAM, subject=f"team:{team.id}",
                detail=f"Team {team.id} has no members",
            ))
        if team.leader_id not in team.members:
            violations.append(Violation(
                rule=LEADER_IS_MEMBER, subject=f"team:{team.id}",
                detail=f"Leader {team.leader_id} is not a member of team {team.id}",
            ))
        for user_id in team.members:
            if user_id in seen and seen[user_id] != team.id:
                violations.append(Violation(
                    rule=SINGLE_MEMBERSHIP, subject=f"user:{user_id}",
                    detail=f"User {user_id} is in teams {seen[user_id]} and {team.id}",
                ))
            seen.setdefault(user_id, team.id)

    for user in users:
        led = teams_led_by(user.id, teams)
        if user.role == Role.TEAM_LEADER and len(led) != 1:
            violations.append(Violation(
                rule=ROLE_MATCHES_LEADERSHIP, subject=f"user:{user.id}",
                detail=f"User {user.id} is labelled Team Leader but leads {len(led)} teams",
            ))
        elif user.role == Role.MEMBER and led:
            violations.append(Violation(
                rule=ROLE_MATCHES_LEADERSHIP, subject=f"user:{user.id}",
                detail=f"User {user.id} leads team {led[0].id} but is labelled Member",
            ))
    return violations

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Live revalidation of the caller.

The token's role/active claims are only what was true at issue time; every
privileged path re-reads the caller from the Account Store and uses that.
"""

from teamflow.core.errors import NotFoundError, UnauthenticatedError, UnauthorizedError
from teamflow.models.domain import Principal, Role, User


def load_actor(accounts, principal: Principal) -> Principal:
    """Return the caller's live identity, rejecting deleted or inactive accounts."""
    try:
        user: User = accounts.get_user(principal.user_id)
    except NotFoundError:
        raise UnauthenticatedError(
            f"Account {principal.user_id} no longer exists", reason="unknown_account",
        )
    if not user.active:
        raise UnauthorizedError(f"Account {user.id} is not active", reason="inactive")
    return Principal(user_id=user.id, role=user.role, active=user.active)


def require_admin(accounts, principal: Principal) -> Principal:
    actor = load_actor(accounts, principal)
    if actor.role != Role.ADMIN:
        raise UnauthorizedError("Admin role required", reason="admin_only")
    return actor


def require_admin_or_leader(accounts, principal: Principal, leader_id: int) -> Principal:
    actor = load_actor(accounts, principal)
    if actor.role != Role.ADMIN and actor.user_id != leader_id:
        raise UnauthorizedError(
            "Only an Admin or the team's leader may do this", reason="not_team_leader",
        )
    return actor

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Task authorization and status rules. Pure functions, no store access.
"""

from typing import Iterable

from teamflow.core.errors import ValidationFailedError
from teamflow.metrics.prometheus import AUTHZ_DECISIONS
from teamflow.models.domain import Decision, Principal, Role, Task, TaskAction, TaskStatus

# Every status may move to every other; only a same-status "transition" is refused.
ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.TODO:        {TaskStatus.IN_PROGRESS, TaskStatus.DONE},
    TaskStatus.IN_PROGRESS: {TaskStatus.TODO, TaskStatus.DONE},
    TaskStatus.DONE:        {TaskStatus.TODO, TaskStatus.IN_PROGRESS},
}

LEADER_ONLY = {TaskAction.EDIT, TaskAction.DELETE, TaskAction.ASSIGN}
LEADER_OR_ASSIGNEE = {TaskAction.STATUS, TaskAction.COMMENT, TaskAction.ATTACH}


def _decide(principal: Principal, task: Task, action: TaskAction,
            team_member_ids: frozenset[int]) -> Decision:
    if not principal.active:
        return Decision.deny("inactive")
    is_leader = principal.user_id == task.leader_id
    is_assignee = task.assigned_to_id is not None and principal.user_id == task.assigned_to_id

    if action == TaskAction.SEARCH:
        if principal.role == Role.ADMIN:
            return Decision.allow("admin_override")
        return Decision.deny("admin_only")
    if action == TaskAction.VIEW:
        if is_leader:
            return Decision.allow("leader")
        if is_assignee:
            return Decision.allow("assignee")
        if principal.role == Role.ADMIN:
            return Decision.allow("admin_override")
        if principal.user_id in team_member_ids:
            return Decision.allow("team_member")
        return Decision.deny("not_related")
    if action in LEADER_ONLY:
        return Decision.allow("leader") if is_leader else Decision.deny("leader_only")
    if action in LEADER_OR_ASSIGNEE:
        if is_leader:
            return Decision.allow("leader")
        if is_assignee:
            return Decision.allow("assignee")
        return Decision.deny("not_leader_or_assignee")
    return Decision.deny("unknown_action")


def authorize_task_action(principal: Principal, task: Task, action,
                          team_member_ids: Iterable[int] = ()) -> Decision:
    """Allow or Deny ``action`` on ``task`` for ``principal``; never raises.

    ``team_member_ids`` is the roster of the team the task's leader runs; it
    only widens read access. ``principal`` must carry the caller's live role.
    """
    try:
        action = TaskAction(action)
    except ValueError:
        AUTHZ_DECISIONS.labels(action="unknown", decision="deny").inc()
        return Decision.deny("unknown_action")
    decision = _decide(principal, task, action, frozenset(team_member_ids))
    AUTHZ_DECISIONS.labels(
        action=action.value, decision="allow" if decision.allowed else "deny",
    ).inc()
    return decision


def check_status_transition(current: TaskStatus, new: TaskStatus) -> None:
    if new == current:
        raise ValidationFailedError(
            f"Current task status is already '{current.value}'", reason="no_op_transition",
        )
    if new not in ALLOWED_TRANSITIONS[current]:
        raise ValidationFailedError(
            f"Cannot move task from '{current.value}' to '{new.value}'",
            reason="invalid_transition",
        )

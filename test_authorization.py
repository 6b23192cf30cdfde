# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false

"""Tests for the pure task authorization and status-transition rules."""

from datetime import date

import pytest

from teamflow.core.errors import ValidationFailedError
from teamflow.models.domain import Principal, Role, Task, TaskAction, TaskStatus
from teamflow.services.authorization import authorize_task_action, check_status_transition

LEADER = Principal(user_id=2, role=Role.TEAM_LEADER)
ASSIGNEE = Principal(user_id=3, role=Role.MEMBER)
TEAMMATE = Principal(user_id=4, role=Role.MEMBER)
STRANGER = Principal(user_id=5, role=Role.MEMBER)
ADMIN = Principal(user_id=1, role=Role.ADMIN)
ROSTER = [2, 3, 4]


@pytest.fixture
def task():
    return Task(id=1, title="Ship it", leader_id=2, assigned_to_id=3, due_date=date(2025, 1, 1))


class TestLeader:
    @pytest.mark.parametrize("action", list(TaskAction))
    def test_leader_may_do_everything_but_search(self, task, action):
        decision = authorize_task_action(LEADER, task, action)
        assert decision.allowed is (action != TaskAction.SEARCH)


class TestAssignee:
    @pytest.mark.parametrize("action", [TaskAction.STATUS, TaskAction.COMMENT, TaskAction.ATTACH,
                                        TaskAction.VIEW])
    def test_allowed(self, task, action):
        decision = authorize_task_action(ASSIGNEE, task, action)
        assert decision.allowed
        assert decision.reason == "assignee"

    @pytest.mark.parametrize("action", [TaskAction.EDIT, TaskAction.DELETE, TaskAction.ASSIGN])
    def test_leader_only_actions_denied(self, task, action):
        decision = authorize_task_action(ASSIGNEE, task, action)
        assert not decision.allowed
        assert decision.reason == "leader_only"


class TestOthers:
    def test_unrelated_member_cannot_change_status(self, task):
        decision = authorize_task_action(STRANGER, task, TaskAction.STATUS, ROSTER)
        assert decision.allowed is False
        assert decision.reason == "not_leader_or_assignee"

    def test_unrelated_member_cannot_comment(self, task):
        assert not authorize_task_action(STRANGER, task, "comment", ROSTER).allowed

    def test_unrelated_member_cannot_view(self, task):
        decision = authorize_task_action(STRANGER, task, TaskAction.VIEW, ROSTER)
        assert decision.reason == "not_related"

    def test_teammate_may_view_only(self, task):
        assert authorize_task_action(TEAMMATE, task, TaskAction.VIEW, ROSTER).reason == "team_member"
        assert not authorize_task_action(TEAMMATE, task, TaskAction.STATUS, ROSTER).allowed

    def test_admin_views_and_searches_by_override(self, task):
        assert authorize_task_action(ADMIN, task, TaskAction.VIEW).reason == "admin_override"
        assert authorize_task_action(ADMIN, task, TaskAction.SEARCH).allowed
        assert not authorize_task_action(ADMIN, task, TaskAction.EDIT).allowed

    def test_inactive_principal_denied(self, task):
        inactive = Principal(user_id=2, role=Role.TEAM_LEADER, active=False)
        assert authorize_task_action(inactive, task, TaskAction.VIEW).reason == "inactive"

    def test_unknown_action_denied_without_raising(self, task):
        decision = authorize_task_action(LEADER, task, "archive")
        assert decision.allowed is False
        assert decision.reason == "unknown_action"

    def test_unassigned_task_has_no_assignee(self):
        task = Task(id=2, title="Open", leader_id=2, due_date=date(2025, 1, 1))
        assert not authorize_task_action(ASSIGNEE, task, TaskAction.STATUS).allowed


class TestStatusTransitions:
    @pytest.mark.parametrize("current,new", [
        (TaskStatus.TODO, TaskStatus.IN_PROGRESS),
        (TaskStatus.TODO, TaskStatus.DONE),
        (TaskStatus.DONE, TaskStatus.TODO),
        (TaskStatus.IN_PROGRESS, TaskStatus.DONE),
    ])
    def test_allowed(self, current, new):
        check_status_transition(current, new)

    def test_same_status_is_rejected(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            check_status_transition(TaskStatus.DONE, TaskStatus.DONE)
        assert exc_info.value.reason == "no_op_transition"

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false

"""
Tests for ConsistencyOrchestrator and ConsistencyReconciler.
Every scenario ends by scanning both stores for broken consistency rules.
"""

import pytest

from conftest import patch_sets
from teamflow.core.errors import (
    ConflictError,
    NotFoundError,
    PartialFailureCompensatedError,
    PartialFailureUncompensatedError,
    StoreUnavailableError,
    UnauthenticatedError,
    UnauthorizedError,
    ValidationFailedError,
)
from teamflow.models.domain import Principal, Role
from teamflow.services.invariants import (
    ROLE_MATCHES_LEADERSHIP,
    SINGLE_MEMBERSHIP,
    find_violations,
)


@pytest.fixture
def assert_consistent(accounts, team_client):
    def _check():
        violations = find_violations(accounts.list_users(), team_client.list_teams())
        assert violations == [], violations
    return _check


@pytest.fixture
def staff(admin, make_user):
    """Admin 1 plus free active Members 2, 3 and 4."""
    for user_id in (2, 3, 4):
        make_user(user_id)
    return admin


# ============================================
# CreateTeamWithLeader
# ============================================
class TestCreateTeamWithLeader:
    def test_creates_team_and_promotes_leader(self, orchestrator, accounts, staff, assert_consistent):
        team = orchestrator.create_team_with_leader(staff, "Platform", "infra", 2)
        assert team.leader_id == 2
        assert team.members == [2]
        assert accounts.get_user(2).role == Role.TEAM_LEADER
        assert_consistent()

    def test_non_admin_is_rejected(self, orchestrator, staff, make_user):
        member = Principal(user_id=3, role=Role.MEMBER)
        with pytest.raises(UnauthorizedError) as exc_info:
            orchestrator.create_team_with_leader(member, "Platform", "", 2)
        assert exc_info.value.reason == "admin_only"

    def test_busy_candidate_is_not_eligible(self, orchestrator, staff, make_team, accounts):
        accounts.set_role(2, Role.TEAM_LEADER)
        make_team(10, leader_id=2, members=[2, 3])
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.create_team_with_leader(staff, "Other", "", 3)
        assert exc_info.value.reason == "not_eligible"

    def test_inactive_candidate_is_not_eligible(self, orchestrator, admin, make_user):
        make_user(5, active=False)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.create_team_with_leader(admin, "Ghosts", "", 5)
        assert exc_info.value.reason == "not_eligible"

    def test_admin_candidate_is_not_eligible(self, orchestrator, admin, make_user):
        make_user(6, Role.ADMIN)
        with pytest.raises(ConflictError):
            orchestrator.create_team_with_leader(admin, "Admins", "", 6)

    def test_unknown_candidate(self, orchestrator, admin):
        with pytest.raises(NotFoundError):
            orchestrator.create_team_with_leader(admin, "Nobody", "", 99)

    def test_duplicate_name_is_rejected(self, orchestrator, staff):
        orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.create_team_with_leader(staff, "platform", "", 3)
        assert exc_info.value.reason == "already_exists"

    def test_promotion_failure_rolls_back_team(self, orchestrator, staff, users, teams, accounts,
                                               assert_consistent):
        users.fail("update", when=patch_sets("role"))
        with pytest.raises(PartialFailureCompensatedError) as exc_info:
            orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        assert exc_info.value.failed_step == "promote_leader"
        assert teams.inner.count() == 0
        assert accounts.get_user(2).role == Role.MEMBER
        assert_consistent()

    def test_retry_after_compensation_succeeds(self, orchestrator, staff, users, assert_consistent):
        users.fail("update", when=patch_sets("role"))
        with pytest.raises(PartialFailureCompensatedError):
            orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        team = orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        assert team.leader_id == 2
        assert_consistent()

    def test_promotion_timeout_after_effect_is_undone(self, orchestrator, staff, users, teams,
                                                      accounts, assert_consistent):
        users.timeout("update", apply_first=True, when=patch_sets("role", Role.TEAM_LEADER.value))
        with pytest.raises(PartialFailureCompensatedError):
            orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        assert accounts.get_user(2).role == Role.MEMBER
        assert teams.inner.count() == 0
        assert_consistent()

    def test_team_creation_timeout_after_effect_is_cleaned_up(self, orchestrator, staff, teams,
                                                              accounts, assert_consistent):
        teams.timeout("create", apply_first=True)
        with pytest.raises(PartialFailureCompensatedError) as exc_info:
            orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        assert exc_info.value.failed_step == "create_team"
        assert teams.inner.count() == 0
        assert accounts.get_user(2).role == Role.MEMBER
        assert_consistent()

    def test_team_creation_timeout_without_effect(self, orchestrator, staff, teams):
        teams.timeout("create")
        with pytest.raises(PartialFailureCompensatedError):
            orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        assert teams.inner.count() == 0

    def test_team_creation_failure_needs_no_compensation(self, orchestrator, staff, teams, accounts):
        teams.fail("create")
        with pytest.raises(StoreUnavailableError):
            orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        assert accounts.get_user(2).role == Role.MEMBER

    def test_failed_compensation_is_uncompensated(self, orchestrator, reconciler, staff, users,
                                                  teams, assert_consistent):
        users.fail("update", when=patch_sets("role"))
        teams.fail("delete")
        with pytest.raises(PartialFailureUncompensatedError) as exc_info:
            orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        err = exc_info.value
        assert err.failed_compensations == ["create_team"]
        assert err.invariants == [ROLE_MATCHES_LEADERSHIP]
        assert err.status_code == 500

        audit = reconciler.audit(staff)
        assert audit["consistent"] is False
        assert {v["rule"] for v in audit["violations"]} == {ROLE_MATCHES_LEADERSHIP}

        users.heal()
        report = reconciler.reconcile(staff)
        assert report["repaired"] == [{"user_id": 2, "action": "promote"}]
        assert report["consistent"] is True
        assert_consistent()


# ============================================
# DeleteTeam
# ============================================
class TestDeleteTeam:
    @pytest.fixture
    def team_id(self, orchestrator, staff):
        team = orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        orchestrator.add_member(staff, team.id, 3)
        return team.id

    def test_deletes_team_and_demotes_leader(self, orchestrator, staff, team_id, accounts,
                                             teams, assert_consistent):
        result = orchestrator.delete_team(staff, team_id)
        assert result == {"team_id": team_id, "leader_id": 2, "leader_demoted": True}
        assert teams.inner.count() == 0
        assert accounts.get_user(2).role == Role.MEMBER
        assert_consistent()

    def test_members_become_free_again(self, orchestrator, staff, team_id):
        orchestrator.delete_team(staff, team_id)
        team = orchestrator.create_team_with_leader(staff, "Next", "", 3)
        assert team.leader_id == 3

    def test_failed_demotion_is_deferred_and_reconciled(self, orchestrator, reconciler, staff,
                                                        team_id, users, accounts,
                                                        assert_consistent):
        users.fail("update", when=patch_sets("role", Role.MEMBER.value))
        result = orchestrator.delete_team(staff, team_id)
        assert result["leader_demoted"] is False
        assert accounts.get_user(2).role == Role.TEAM_LEADER

        audit = reconciler.audit(staff)
        assert audit["consistent"] is False
        assert audit["violations"][0]["subject"] == "user:2"

        report = reconciler.reconcile(staff)
        assert report["repaired"] == [{"user_id": 2, "action": "demote"}]
        assert report["failed"] == []
        assert accounts.get_user(2).role == Role.MEMBER
        assert_consistent()

    def test_reconcile_reports_failed_repairs(self, orchestrator, reconciler, staff, team_id, users):
        users.fail("update", times=2, when=patch_sets("role", Role.MEMBER.value))
        orchestrator.delete_team(staff, team_id)
        report = reconciler.reconcile(staff)
        assert report["repaired"] == []
        assert report["failed"][0]["user_id"] == 2
        assert report["consistent"] is False

    def test_non_admin_cannot_delete(self, orchestrator, team_id):
        leader = Principal(user_id=2, role=Role.TEAM_LEADER)
        with pytest.raises(UnauthorizedError):
            orchestrator.delete_team(leader, team_id)

    def test_missing_team(self, orchestrator, staff):
        with pytest.raises(NotFoundError):
            orchestrator.delete_team(staff, 404)


# ============================================
# Membership
# ============================================
class TestMembership:
    @pytest.fixture
    def team_id(self, orchestrator, staff):
        return orchestrator.create_team_with_leader(staff, "Platform", "", 2).id

    def test_leader_adds_free_member(self, orchestrator, team_id, assert_consistent):
        leader = Principal(user_id=2, role=Role.TEAM_LEADER)
        team = orchestrator.add_member(leader, team_id, 3)
        assert team.members == [2, 3]
        assert_consistent()

    def test_busy_member_cannot_join_second_team(self, orchestrator, staff, team_id, make_user,
                                                 assert_consistent):
        orchestrator.add_member(staff, team_id, 3)
        other = orchestrator.create_team_with_leader(staff, "Other", "", 4)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.add_member(staff, other.id, 3)
        assert exc_info.value.reason == "already_member"
        assert_consistent()

    def test_team_leader_cannot_join(self, orchestrator, staff, team_id):
        other = orchestrator.create_team_with_leader(staff, "Other", "", 4)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.add_member(staff, other.id, 2)
        assert exc_info.value.reason == "not_eligible"

    def test_inactive_user_cannot_join(self, orchestrator, staff, team_id, make_user):
        make_user(7, active=False)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.add_member(staff, team_id, 7)
        assert exc_info.value.reason == "not_eligible"

    def test_other_leader_cannot_add(self, orchestrator, staff, team_id):
        orchestrator.create_team_with_leader(staff, "Other", "", 4)
        outsider = Principal(user_id=4, role=Role.TEAM_LEADER)
        with pytest.raises(UnauthorizedError) as exc_info:
            orchestrator.add_member(outsider, team_id, 3)
        assert exc_info.value.reason == "not_team_leader"

    def test_remove_member(self, orchestrator, staff, team_id, assert_consistent):
        orchestrator.add_member(staff, team_id, 3)
        team = orchestrator.remove_member(staff, team_id, 3)
        assert team.members == [2]
        assert_consistent()

    def test_leader_cannot_be_removed(self, orchestrator, staff, team_id):
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.remove_member(staff, team_id, 2)
        assert exc_info.value.reason == "leader_removal"

    def test_remove_non_member(self, orchestrator, staff, team_id):
        with pytest.raises(NotFoundError) as exc_info:
            orchestrator.remove_member(staff, team_id, 3)
        assert exc_info.value.reason == "not_member"

    def test_concurrent_team_write_is_detected(self, orchestrator, staff, team_id, teams):
        raced = []

        def race(record_id, patch, *args, **kwargs):
            if not raced:
                raced.append(record_id)
                current = teams.inner.get(record_id)
                teams.inner.update(record_id, {"members": current["members"] + [4]})
            return False

        teams.fail("update", when=race)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.add_member(staff, team_id, 3)
        assert exc_info.value.reason == "version_mismatch"
        assert teams.inner.get(team_id)["members"] == [2, 4]


# ============================================
# Deactivate / Activate
# ============================================
class TestAccountStatus:
    @pytest.fixture
    def team_id(self, orchestrator, staff):
        team = orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        orchestrator.add_member(staff, team.id, 3)
        return team.id

    def test_deactivate_member_leaves_team(self, orchestrator, staff, team_id, team_client,
                                           accounts, assert_consistent):
        user = orchestrator.deactivate_user(staff, 3)
        assert user.active is False
        assert team_client.get_team(team_id).members == [2]
        assert accounts.get_user(3).active is False
        assert_consistent()

    def test_deactivate_free_user(self, orchestrator, staff):
        assert orchestrator.deactivate_user(staff, 4).active is False

    def test_deactivating_a_leader_is_blocked(self, orchestrator, staff, team_id, accounts):
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.deactivate_user(staff, 2)
        assert exc_info.value.reason == "leader_deactivation"
        assert accounts.get_user(2).active is True

    def test_failed_deactivation_restores_membership(self, orchestrator, staff, team_id, users,
                                                     team_client, accounts, assert_consistent):
        users.fail("update", when=patch_sets("active"))
        with pytest.raises(PartialFailureCompensatedError) as exc_info:
            orchestrator.deactivate_user(staff, 3)
        assert exc_info.value.failed_step == "deactivate_account"
        assert team_client.get_team(team_id).members == [2, 3]
        assert accounts.get_user(3).active is True
        assert_consistent()

    def test_failed_membership_restore_is_uncompensated(self, orchestrator, staff, team_id, users,
                                                        teams):
        users.fail("update", when=patch_sets("active"))
        teams.fail("update", when=lambda record_id, patch, *a, **kw: 3 in patch.get("members", []))
        with pytest.raises(PartialFailureUncompensatedError) as exc_info:
            orchestrator.deactivate_user(staff, 3)
        assert exc_info.value.failed_compensations == ["remove_membership"]
        assert exc_info.value.invariants == [SINGLE_MEMBERSHIP]

    def test_deactivated_user_cannot_act(self, orchestrator, staff, team_id):
        orchestrator.deactivate_user(staff, 3)
        with pytest.raises(UnauthorizedError) as exc_info:
            orchestrator.add_member(Principal(user_id=3, role=Role.MEMBER), team_id, 4)
        assert exc_info.value.reason == "inactive"

    def test_activate_is_idempotent(self, orchestrator, staff, make_user):
        make_user(8, active=False)
        assert orchestrator.activate_user(staff, 8).active is True
        assert orchestrator.activate_user(staff, 8).active is True


# ============================================
# TransferLeadership
# ============================================
class TestTransferLeadership:
    @pytest.fixture
    def team_id(self, orchestrator, staff):
        team = orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        orchestrator.add_member(staff, team.id, 3)
        return team.id

    def test_transfer(self, orchestrator, staff, team_id, accounts, assert_consistent):
        result = orchestrator.transfer_leadership(staff, team_id, 3)
        assert result["team"].leader_id == 3
        assert result["previous_leader_id"] == 2
        assert result["previous_leader_demoted"] is True
        assert accounts.get_user(3).role == Role.TEAM_LEADER
        assert accounts.get_user(2).role == Role.MEMBER
        assert result["team"].members == [2, 3]
        assert_consistent()

    def test_new_leader_must_be_member(self, orchestrator, staff, team_id):
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.transfer_leadership(staff, team_id, 4)
        assert exc_info.value.reason == "not_member"

    def test_same_leader(self, orchestrator, staff, team_id):
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.transfer_leadership(staff, team_id, 2)
        assert exc_info.value.reason == "already_leader"

    def test_failed_promotion_restores_leader(self, orchestrator, staff, team_id, users,
                                              team_client, assert_consistent):
        users.fail("update", when=patch_sets("role", Role.TEAM_LEADER.value))
        with pytest.raises(PartialFailureCompensatedError):
            orchestrator.transfer_leadership(staff, team_id, 3)
        assert team_client.get_team(team_id).leader_id == 2
        assert_consistent()

    def test_failed_demotion_is_deferred(self, orchestrator, reconciler, staff, team_id, users,
                                         assert_consistent):
        users.fail("update", when=patch_sets("role", Role.MEMBER.value))
        result = orchestrator.transfer_leadership(staff, team_id, 3)
        assert result["previous_leader_demoted"] is False
        reconciler.reconcile(staff)
        assert_consistent()


# ============================================
# Promote / Demote
# ============================================
class TestPromoteDemote:
    def test_promote_restores_leader_label(self, orchestrator, staff, make_team, accounts,
                                           assert_consistent):
        make_team(10, leader_id=2)
        assert orchestrator.promote_member(staff, 2).role == Role.TEAM_LEADER
        assert_consistent()

    def test_promote_without_team(self, orchestrator, staff):
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.promote_member(staff, 3)
        assert exc_info.value.reason == "no_team_led"

    def test_promote_team_leader(self, orchestrator, staff):
        orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.promote_member(staff, 2)
        assert exc_info.value.reason == "already_leader"

    def test_demote_member_is_idempotent(self, orchestrator, staff):
        assert orchestrator.demote_member(staff, 3).role == Role.MEMBER

    def test_demote_admin_is_invalid(self, orchestrator, staff, make_user):
        make_user(9, Role.ADMIN)
        with pytest.raises(ValidationFailedError) as exc_info:
            orchestrator.demote_member(staff, 9)
        assert exc_info.value.reason == "not_team_leader"

    def test_demote_active_leader_is_blocked(self, orchestrator, staff):
        orchestrator.create_team_with_leader(staff, "Platform", "", 2)
        with pytest.raises(ConflictError) as exc_info:
            orchestrator.demote_member(staff, 2)
        assert exc_info.value.reason == "leader_demotion"

    def test_demote_orphan_leader(self, orchestrator, staff, make_user, assert_consistent):
        make_user(11, Role.TEAM_LEADER)
        assert orchestrator.demote_member(staff, 11).role == Role.MEMBER
        assert_consistent()


# ============================================
# Live revalidation of the caller
# ============================================
class TestLiveRevalidation:
    def test_stale_admin_claim_is_ignored(self, orchestrator, staff):
        stale = Principal(user_id=3, role=Role.ADMIN)
        with pytest.raises(UnauthorizedError) as exc_info:
            orchestrator.create_team_with_leader(stale, "Platform", "", 2)
        assert exc_info.value.reason == "admin_only"

    def test_deleted_caller_is_unauthenticated(self, orchestrator, staff):
        ghost = Principal(user_id=77, role=Role.ADMIN)
        with pytest.raises(UnauthenticatedError) as exc_info:
            orchestrator.activate_user(ghost, 2)
        assert exc_info.value.reason == "unknown_account"

    def test_inactive_admin_is_rejected(self, orchestrator, make_user):
        make_user(1, Role.ADMIN, active=False)
        make_user(2)
        with pytest.raises(UnauthorizedError) as exc_info:
            orchestrator.create_team_with_leader(Principal(user_id=1, role=Role.ADMIN), "X", "", 2)
        assert exc_info.value.reason == "inactive"


class TestRulesHoldAcrossOperations:
    def test_mixed_sequence_stays_consistent(self, orchestrator, staff, make_user,
                                             assert_consistent):
        make_user(5)
        a = orchestrator.create_team_with_leader(staff, "A", "", 2)
        assert_consistent()
        b = orchestrator.create_team_with_leader(staff, "B", "", 3)
        assert_consistent()
        orchestrator.add_member(staff, a.id, 4)
        assert_consistent()
        orchestrator.remove_member(staff, a.id, 4)
        orchestrator.add_member(staff, b.id, 4)
        assert_consistent()
        orchestrator.transfer_leadership(staff, b.id, 4)
        assert_consistent()
        orchestrator.delete_team(staff, a.id)
        assert_consistent()
        orchestrator.deactivate_user(staff, 3)
        assert_consistent()
        orchestrator.add_member(staff, b.id, 5)
        orchestrator.delete_team(staff, b.id)
        assert_consistent()

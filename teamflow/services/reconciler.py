# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: consistency audit and out-of-band repair.

Deferred steps (a demotion that failed after its team was deleted) are not
queued anywhere; the reconciler rediscovers them by scanning both stores.
Only role labels are repaired automatically. Broken team records are
reported for an operator.
"""

from typing import Any

from teamflow.core.errors import TeamflowError
from teamflow.core.logging import get_logger
from teamflow.metrics.prometheus import INVARIANT_VIOLATIONS, REPAIRS_APPLIED_TOTAL
from teamflow.models.domain import Principal, Role
from teamflow.services.access import require_admin
from teamflow.services.invariants import ALL_RULES, find_violations, teams_led_by

logger = get_logger(__name__)


class ConsistencyReconciler:
    def __init__(self, accounts, teams) -> None:
        self._accounts = accounts
        self._teams = teams

    def audit(self, principal: Principal) -> dict[str, Any]:
        require_admin(self._accounts, principal)
        return self._audit()

    def _audit(self) -> dict[str, Any]:
        users = self._accounts.list_users()
        teams = self._teams.list_teams()
        violations = find_violations(users, teams)
        for rule in ALL_RULES:
            INVARIANT_VIOLATIONS.labels(rule=rule).set(
                sum(1 for v in violations if v.rule == rule)
            )
        if violations:
            logger.warning("Consistency audit found %d violations", len(violations),
                           extra={"invariants": sorted({v.rule for v in violations})})
        return {
            "consistent": not violations,
            "users_scanned": len(users),
            "teams_scanned": len(teams),
            "violations": [v.model_dump() for v in violations],
        }

    def reconcile(self, principal: Principal) -> dict[str, Any]:
        require_admin(self._accounts, principal)
        users = self._accounts.list_users()
        teams = self._teams.list_teams()
        repaired: list[dict[str, Any]] = []
        failed: list[dict[str, Any]] = []

        for user in users:
            led = teams_led_by(user.id, teams)
            action = None
            if user.role == Role.TEAM_LEADER and not led:
                action, role = "demote", Role.MEMBER
            elif user.role == Role.MEMBER and len(led) == 1 and user.active:
                action, role = "promote", Role.TEAM_LEADER
            if action is None:
                continue
            try:
                self._accounts.set_role(user.id, role)
            except TeamflowError as exc:
                failed.append({"user_id": user.id, "action": action, "error": str(exc)})
                logger.error("Repair %s of user %s failed: %s", action, user.id, exc)
                continue
            REPAIRS_APPLIED_TOTAL.labels(action=action).inc()
            repaired.append({"user_id": user.id, "action": action})
            logger.info("Repaired role of user %s (%s)", user.id, action)

        report = self._audit()
        report["repaired"] = repaired
        report["failed"] = failed
        return report

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Saga runner: ordered store calls with reverse-order compensation.

A step whose call times out may or may not have taken effect, so its own
compensation runs too (with ``None`` instead of the step's result);
compensations must therefore be idempotent. Compensation failures are never
retried here: they surface as ``PartialFailureUncompensatedError`` and are
logged at CRITICAL with the rules left at risk.
"""

from typing import Any, Callable, Optional

from teamflow.core.errors import (
    PartialFailureCompensatedError,
    PartialFailureUncompensatedError,
    StoreTimeoutError,
    TeamflowError,
)
from teamflow.core.logging import get_logger
from teamflow.metrics.prometheus import COMPENSATIONS_TOTAL

logger = get_logger(__name__)


class _Completed:
    def __init__(self, name: str, result: Any,
                 compensation: Optional[Callable[[Any], None]],
                 invariants: tuple[str, ...]) -> None:
        self.name = name
        self.result = result
        self.compensation = compensation
        self.invariants = invariants


class Saga:
    """Run steps in order; unwind completed steps when a later one fails."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self._completed: list[_Completed] = []

    def step(
        self,
        name: str,
        action: Callable[[], Any],
        compensation: Optional[Callable[[Any], None]] = None,
        invariants: tuple[str, ...] = (),
    ) -> Any:
        try:
            result = action()
        except TeamflowError as exc:
            if isinstance(exc, StoreTimeoutError) and compensation is not None:
                self._completed.append(_Completed(name, None, compensation, invariants))
            if not self._completed:
                raise
            self._unwind(name, exc)
        self._completed.append(_Completed(name, result, compensation, invariants))
        return result

    def _unwind(self, failed_step: str, cause: TeamflowError) -> None:
        logger.error(
            "%s failed at step '%s': %s; compensating",
            self.operation, failed_step, cause,
            extra={"operation": self.operation, "step": failed_step},
        )
        failed: list[str] = []
        at_risk: list[str] = []
        for done in reversed(self._completed):
            if done.compensation is None:
                continue
            try:
                done.compensation(done.result)
            except TeamflowError as exc:
                failed.append(done.name)
                at_risk.extend(r for r in done.invariants if r not in at_risk)
                logger.critical(
                    "Compensation of step '%s' failed: %s", done.name, exc,
                    extra={"operation": self.operation, "step": done.name,
                           "invariants": list(done.invariants)},
                )
        self._completed.clear()

        if failed:
            COMPENSATIONS_TOTAL.labels(operation=self.operation, result="failed").inc()
            logger.critical(
                "%s left the stores inconsistent; operator action required",
                self.operation,
                extra={"operation": self.operation, "step": failed_step, "invariants": at_risk},
            )
            raise PartialFailureUncompensatedError(
                self.operation, failed_step, cause, failed, at_risk,
            ) from cause

        COMPENSATIONS_TOTAL.labels(operation=self.operation, result="succeeded").inc()
        logger.warning(
            "%s rolled back after failure at step '%s'", self.operation, failed_step,
            extra={"operation": self.operation, "step": failed_step},
        )
        raise PartialFailureCompensatedError(self.operation, failed_step, cause) from cause

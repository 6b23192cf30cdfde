# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Error taxonomy. Every failure surfaced to a caller is one of these.

Each class carries a stable machine-readable ``kind`` and the HTTP status the
API layer answers with. ``reason`` narrows a kind (e.g. which consistency rule
a ``ConflictError`` protects); clients branch on kind/reason, never on text.
"""

from typing import Any, Optional


class TeamflowError(Exception):
    """Base exception for all orchestrator errors."""

    kind: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        detail: Any = None,
    ) -> None:
        self.message = message
        self.reason = reason
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.kind,
            "reason": self.reason,
            "detail": self.message,
        }
        if self.detail is not None:
            body["context"] = self.detail
        return body


class UnauthenticatedError(TeamflowError):
    """No token, or a token the identity verifier rejects."""
    kind = "unauthenticated"
    status_code = 401


class UnauthorizedError(TeamflowError):
    """Valid principal, insufficient role or ownership."""
    kind = "unauthorized"
    status_code = 403


class NotFoundError(TeamflowError):
    """Referenced id absent in its store."""
    kind = "not_found"
    status_code = 404


class ConflictError(TeamflowError):
    """The request would break a cross-store consistency rule."""
    kind = "conflict"
    status_code = 409


class ValidationFailedError(TeamflowError):
    """Malformed input."""
    kind = "validation_failed"
    status_code = 422


class StoreUnavailableError(TeamflowError):
    """A store call failed at the transport level or with a 5xx."""
    kind = "store_unavailable"
    status_code = 503

    def __init__(self, message: str, store: str = "", reason: Optional[str] = None,
                 detail: Any = None) -> None:
        self.store = store
        super().__init__(message, reason=reason, detail=detail)


class StoreTimeoutError(StoreUnavailableError):
    """A store call exceeded its time bound; its effect is unknown."""
    kind = "store_timeout"
    status_code = 504


class PartialFailureCompensatedError(TeamflowError):
    """A multi-step operation failed and was rolled back; safe to retry."""
    kind = "partial_failure_compensated"
    status_code = 503

    def __init__(self, operation: str, failed_step: str, cause: Exception) -> None:
        self.operation = operation
        self.failed_step = failed_step
        self.cause = cause
        super().__init__(
            f"{operation} failed at step '{failed_step}' and was rolled back: {cause}",
            reason=getattr(cause, "kind", type(cause).__name__),
            detail={"operation": operation, "failed_step": failed_step},
        )


class PartialFailureUncompensatedError(TeamflowError):
    """Compensation itself failed; an operator has to step in."""
    kind = "partial_failure_uncompensated"
    status_code = 500

    def __init__(
        self,
        operation: str,
        failed_step: str,
        cause: Exception,
        failed_compensations: list[str],
        invariants: list[str],
    ) -> None:
        self.operation = operation
        self.failed_step = failed_step
        self.cause = cause
        self.failed_compensations = failed_compensations
        self.invariants = invariants
        super().__init__(
            f"{operation} failed at step '{failed_step}' and could not be rolled back "
            f"(compensation failed: {', '.join(failed_compensations)})",
            reason="compensation_failed",
            detail={
                "operation": operation,
                "failed_step": failed_step,
                "failed_compensations": failed_compensations,
                "invariants_at_risk": invariants,
            },
        )

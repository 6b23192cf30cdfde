# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Controller: consistency audit and out-of-band repair (Admin only)."""
from fastapi import APIRouter, Depends

from teamflow.core.dependencies import get_reconciler
from teamflow.core.security import get_principal
from teamflow.models.domain import Principal
from teamflow.schemas.api import ERROR_RESPONSES
from teamflow.services.reconciler import ConsistencyReconciler

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], responses=ERROR_RESPONSES)


@router.get("/consistency")
def consistency_audit(
    principal: Principal = Depends(get_principal),
    reconciler: ConsistencyReconciler = Depends(get_reconciler),
):
    return reconciler.audit(principal)


@router.post("/reconcile")
def reconcile(
    principal: Principal = Depends(get_principal),
    reconciler: ConsistencyReconciler = Depends(get_reconciler),
):
    """Repair role labels left behind by deferred steps, then re-audit."""
    return reconciler.reconcile(principal)

# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Health, readiness and Prometheus scrape endpoints."""
from datetime import datetime, timezone

from fastapi import APIRouter
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from teamflow.core.config import settings
from teamflow.core.dependencies import get_backends
from teamflow.core.errors import StoreUnavailableError

router = APIRouter(tags=["System"])


@router.get("/health")
def health_check():
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "store_backend": settings.STORE_BACKEND,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
def readiness_check():
    stores = {name: backend.ping() for name, backend in get_backends().items()}
    if not all(stores.values()):
        down = sorted(name for name, ok in stores.items() if not ok)
        raise StoreUnavailableError(
            f"Stores unavailable: {', '.join(down)}", store=",".join(down),
            reason="not_ready", detail={"stores": stores},
        )
    return {"status": "ready", "service": settings.SERVICE_NAME, "stores": stores}


@router.get("/metrics")
def prometheus_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

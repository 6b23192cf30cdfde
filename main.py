# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
TeamFlow Consistency Orchestrator
=================================
Coordinates the Account, Team and Task stores so that the role/leadership
coupling, team membership rules and task permissions stay consistent across
stores that share no transaction.

Multi-step writes run as sagas with reverse-order compensation; steps that
cannot be undone are left for the reconciler (POST /api/v1/admin/reconcile).

Port: 8010
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teamflow.controllers import (
    admin_controller,
    system_controller,
    task_controller,
    team_controller,
    user_controller,
)
from teamflow.core.config import settings
from teamflow.core.dependencies import close_clients
from teamflow.core.errors import TeamflowError
from teamflow.core.logging import get_logger
from teamflow.middleware import MetricsMiddleware, RequestIDMiddleware

logger = get_logger("teamflow")


@asynccontextmanager
async def lifespan(application: FastAPI):
    logger.info(
        "Starting %s v%s (stores=%s, identity=%s)",
        settings.SERVICE_NAME, settings.SERVICE_VERSION,
        settings.STORE_BACKEND, settings.IDENTITY_BACKEND,
    )
    yield
    close_clients()
    logger.info("Shutting down %s", settings.SERVICE_NAME)


app = FastAPI(
    title="TeamFlow Consistency Orchestrator",
    description="Cross-store consistency for users, teams and tasks",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


# ── Error envelope ──────────────────────────────────────────────────────────
@app.exception_handler(TeamflowError)
async def teamflow_error_handler(request: Request, exc: TeamflowError):
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
    body = exc.to_dict()
    body["request_id"] = _request_id(request)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_failed",
            "reason": "invalid_request",
            "detail": "Request validation failed",
            "context": _validation_errors(exc),
            "request_id": _request_id(request),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "reason": None,
            "detail": "Internal server error",
            "request_id": _request_id(request),
        },
    )


# ── Routers ─────────────────────────────────────────────────────────────────
app.include_router(system_controller.router)
app.include_router(user_controller.router)
app.include_router(team_controller.router)
app.include_router(task_controller.router)
app.include_router(admin_controller.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVICE_PORT, log_level=settings.LOG_LEVEL.lower())

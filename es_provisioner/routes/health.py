from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from starlette import status
from starlette.concurrency import run_in_threadpool

from es_provisioner.models.health import HealthResponse
from es_provisioner.services.dependencies import get_search_backend_service, operator_running
from es_provisioner.services.search_backend_service import SearchBackendService

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get("/readyz", response_model=HealthResponse)
async def readyz(
    running: bool = Depends(operator_running),
    backend: SearchBackendService = Depends(get_search_backend_service),
) -> HealthResponse:
    if not running:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Operator is not running")

    # Backend failures are mapped to 503 by the app's exception handlers.
    await run_in_threadpool(backend.ping)
    return HealthResponse(status="ready")

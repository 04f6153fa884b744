# File: manga_api/api/v1/routes_status.py

"""
Status and monitoring endpoints.

GET  /status                 health document (?detailed=true for the full one)
GET  /status/database        connectivity + table row counts
GET  /status/storage         upload directory check
GET  /status/routes          registered endpoints
POST /status/metrics/reset   clear in-memory metrics (admin)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from manga_api.api.deps import get_metrics, get_status_reporter, require_admin
from manga_api.schemas.auth import MessageResponse
from manga_api.services.metrics import MetricsRecorder
from manga_api.services.status_service import StatusReporter

router = APIRouter()


@router.get("", summary="Service health")
def get_status(
    detailed: bool = False,
    reporter: StatusReporter = Depends(get_status_reporter),
):
    code, document = reporter.build(detailed=detailed)
    return JSONResponse(status_code=code, content=document)


@router.get("/database", summary="Database status")
def get_database_status(reporter: StatusReporter = Depends(get_status_reporter)):
    code, report = reporter.database_report()
    return JSONResponse(status_code=code, content=report)


@router.get("/storage", summary="Upload storage status")
def get_storage_status(reporter: StatusReporter = Depends(get_status_reporter)):
    code, report = reporter.storage_report()
    return JSONResponse(status_code=code, content=report)


@router.get("/routes", summary="Registered API routes")
def get_routes(reporter: StatusReporter = Depends(get_status_reporter)):
    return reporter.routes_report()


@router.post(
    "/metrics/reset",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
    summary="Reset in-memory metrics (admin)",
)
def reset_metrics(
    metrics: MetricsRecorder = Depends(get_metrics),
    reporter: StatusReporter = Depends(get_status_reporter),
):
    metrics.reset()
    reporter.clear_cache()
    return MessageResponse(message="Metrics reset")

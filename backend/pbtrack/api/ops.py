"""Operational endpoints: liveness, readiness and Prometheus scrape."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from pbtrack.obs import health
from pbtrack.settings import settings

router = APIRouter(tags=["ops"])


@router.get("/health/live")
async def liveness() -> dict[str, bool]:
	return {"ok": True}


@router.get("/health/ready")
async def readiness() -> JSONResponse:
	report = await health.readiness()
	status_code = status.HTTP_200_OK if report["ok"] else status.HTTP_503_SERVICE_UNAVAILABLE
	return JSONResponse(status_code=status_code, content=report)


@router.get("/metrics")
async def metrics_endpoint() -> Response:
	if not settings.obs_metrics_public:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="not_found")
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

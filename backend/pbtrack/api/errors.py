"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from pbtrack.domain.records.exceptions import (
	ComparatorFailure,
	ProfileNotFound,
	RecordsError,
	StoreWriteFailure,
	TagNotFound,
)
from pbtrack.obs.logging import current_request_id

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[RecordsError], int], ...] = (
	(ProfileNotFound, status.HTTP_404_NOT_FOUND),
	(TagNotFound, status.HTTP_404_NOT_FOUND),
	(StoreWriteFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
	(ComparatorFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: RecordsError) -> int:
	for error_type, status_code in _STATUS_BY_ERROR:
		if isinstance(exc, error_type):
			return status_code
	return status.HTTP_500_INTERNAL_SERVER_ERROR


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": current_request_id()}
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {"detail": "validation_error", "errors": jsonable_encoder(exc.errors()), "request_id": current_request_id()}
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(RecordsError)
	async def records_exc_handler(request: Request, exc: RecordsError):  # type: ignore[override]
		status_code = status_for(exc)
		if status_code >= 500:
			logger.error("Record operation failed: %s", exc, exc_info=exc)
		payload = {"detail": exc.reason, "message": str(exc), "request_id": current_request_id()}
		return JSONResponse(status_code=status_code, content=payload)

	@app.exception_handler(RedisError)
	async def redis_exc_handler(request: Request, exc: RedisError):  # type: ignore[override]
		logger.error("Store unavailable: %s", exc, exc_info=exc)
		payload = {"detail": "store_unavailable", "request_id": current_request_id()}
		return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)

"""FastAPI routes for result submission and personal-best maintenance."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status

from pbtrack.domain.records.schemas import (
	RankMemoryUpdateRequest,
	ResultSubmissionSchema,
	SubmissionOutcomeSchema,
)
from pbtrack.domain.records.service import RecordService

router = APIRouter(prefix="/users/{uid}", tags=["records"])

_service = RecordService()


@router.post("/results", response_model=SubmissionOutcomeSchema)
async def submit_result_endpoint(uid: str, payload: ResultSubmissionSchema) -> SubmissionOutcomeSchema:
	outcome = await _service.process_submission(uid, payload.to_domain())
	return SubmissionOutcomeSchema.from_domain(outcome)


@router.put("/lb-memory", status_code=status.HTTP_204_NO_CONTENT)
async def update_rank_memory_endpoint(uid: str, payload: RankMemoryUpdateRequest) -> Response:
	try:
		await _service.set_rank(uid, payload.mode, payload.sub_mode, payload.language, payload.rank)
	except ValueError as exc:
		raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/personal-bests", status_code=status.HTTP_204_NO_CONTENT)
async def clear_records_endpoint(uid: str) -> Response:
	await _service.clear_records(uid)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/personal-bests/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_global_records_endpoint(uid: str) -> Response:
	await _service.reset_global_records(uid)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/tags/{tag_id}/personal-bests", status_code=status.HTTP_204_NO_CONTENT)
async def remove_tag_records_endpoint(uid: str, tag_id: str) -> Response:
	await _service.remove_tag_records(uid, tag_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)

from fastapi import APIRouter, Depends, Query

from korsify.api.models import JobListResponse
from korsify.config import Settings, get_settings
from korsify.services import jobs as job_service

router = APIRouter()


@router.get("/{document_id}/jobs", response_model=JobListResponse)
async def list_document_jobs(  # noqa: B008
  document_id: str,
  limit: int = Query(default=20, ge=1, le=50),
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> JobListResponse:
  """List generation jobs for a document, newest first."""
  return await job_service.list_document_jobs(document_id, settings, limit=limit)

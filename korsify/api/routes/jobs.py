import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status

from korsify.api.models import JobCreateRequest, JobStatusResponse
from korsify.config import Settings, get_settings
from korsify.services import jobs as job_service

router = APIRouter()
logger = logging.getLogger("korsify.api.routes.jobs")


@router.post("", response_model=JobStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_job(  # noqa: B008
  request: JobCreateRequest,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> JobStatusResponse:
  """Create a course generation job for an uploaded document."""
  return await job_service.create_job(request, settings, background_tasks)


@router.post("/{job_id}/retry", response_model=JobStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry_job(  # noqa: B008
  job_id: str,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> JobStatusResponse:
  """Start a new job for the document of a failed job."""
  return await job_service.retry_job(job_id, settings, background_tasks)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(  # noqa: B008
  job_id: str,
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> JobStatusResponse:
  """Fetch status, phase, progress and outcome of a job."""
  return await job_service.get_job_status(job_id, settings)

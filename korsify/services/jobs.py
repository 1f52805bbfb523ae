import logging

from fastapi import BackgroundTasks, HTTPException, status

from korsify.ai.factory import get_course_generator
from korsify.api.models import JobCreateRequest, JobListResponse, JobStatusResponse
from korsify.config import Settings
from korsify.jobs import state
from korsify.jobs.models import JobRecord
from korsify.jobs.worker import JobProcessor, fail_expired_leases
from korsify.services.tasks.factory import get_task_enqueuer
from korsify.storage.factory import _get_courses_repo, _get_documents_repo, _get_jobs_repo
from korsify.utils.ids import generate_course_id, generate_job_id

logger = logging.getLogger(__name__)

_JOB_NOT_FOUND_MSG = "Job not found."
_MAX_LISTED_JOBS = 50


def _new_job_record(*, document_id: str, course_id: str, user_id: str | None, options: dict, retry_of_job_id: str | None = None) -> JobRecord:
  timestamp = state.format_timestamp(state.utc_now())
  message = f"Retry of job {retry_of_job_id} queued." if retry_of_job_id else "Job queued."
  return JobRecord(
    job_id=generate_job_id(),
    document_id=document_id,
    status="pending",
    created_at=timestamp,
    updated_at=timestamp,
    course_id=course_id,
    user_id=user_id,
    options=options,
    phase=None,
    progress=0,
    retry_of_job_id=retry_of_job_id,
    logs=[message],
  )


async def create_job(request: JobCreateRequest, settings: Settings, background_tasks: BackgroundTasks) -> JobStatusResponse:
  """Create a pending generation job for a document and schedule it."""
  documents_repo = _get_documents_repo(settings)
  document = await documents_repo.get_document(request.document_id)
  if document is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found.")

  repo = _get_jobs_repo(settings)
  record = _new_job_record(
    document_id=document.document_id,
    course_id=request.course_id or generate_course_id(),
    user_id=request.user_id or document.uploaded_by,
    options=request.options.model_dump(mode="json", by_alias=True),
  )
  await repo.create_job(record)
  logger.info("Created job %s for document %s", record.job_id, record.document_id)

  trigger_job_processing(background_tasks, record.job_id, settings)
  return JobStatusResponse.from_record(record)


async def retry_job(job_id: str, settings: Settings, background_tasks: BackgroundTasks) -> JobStatusResponse:
  """Queue a fresh job for the same document; the failed job is left as-is."""
  repo = _get_jobs_repo(settings)
  record = await repo.get_job(job_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)

  if record.status != "failed":
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only failed jobs can be retried.")

  retry = _new_job_record(document_id=record.document_id, course_id=record.course_id or generate_course_id(), user_id=record.user_id, options=dict(record.options), retry_of_job_id=record.job_id)
  await repo.create_job(retry)
  await repo.append_event(job_id=record.job_id, event_type="retry", message=f"Retried as job {retry.job_id}.", payload_json={"retry_job_id": retry.job_id})
  logger.info("Job %s retried as %s", record.job_id, retry.job_id)

  trigger_job_processing(background_tasks, retry.job_id, settings)
  return JobStatusResponse.from_record(retry)


async def get_job_status(job_id: str, settings: Settings) -> JobStatusResponse:
  """Fetch the status and result of a generation job."""
  repo = _get_jobs_repo(settings)
  record = await repo.get_job(job_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  return JobStatusResponse.from_record(record)


async def list_document_jobs(document_id: str, settings: Settings, *, limit: int = 20) -> JobListResponse:
  """List jobs for a document, newest first."""
  repo = _get_jobs_repo(settings)
  records = await repo.list_jobs_for_document(document_id, limit=min(max(limit, 1), _MAX_LISTED_JOBS))
  return JobListResponse(jobs=[JobStatusResponse.from_record(record) for record in records])


async def _fail_if_active(job_id: str, settings: Settings, *, error: str, kind: str) -> None:
  repo = _get_jobs_repo(settings)
  record = await repo.get_job(job_id)
  if record is None or record.is_terminal:
    return
  changes = state.fail(record, error=error, kind=kind)  # type: ignore[arg-type]
  await repo.update_job(job_id, changes=changes, expected_version=record.version, logs=[f"Job failed ({kind}): {error}"])


async def process_job_sync(job_id: str, settings: Settings) -> JobRecord | None:
  """Run a pending job immediately in this process."""
  repo = _get_jobs_repo(settings)
  try:
    record = await repo.get_job(job_id)
    if record is None:
      logger.warning("Task received for unknown job %s", job_id)
      return None

    processor = JobProcessor(jobs_repo=repo, documents_repo=_get_documents_repo(settings), courses_repo=_get_courses_repo(settings), generator=get_course_generator(settings), settings=settings)
    return await processor.process_job(record)
  except Exception as exc:  # noqa: BLE001
    logger.error("Synchronous job processing failed for job %s: %s", job_id, exc, exc_info=True)
    try:
      await _fail_if_active(job_id, settings, error=f"System error during job initialization: {exc}", kind="permanent")
    except Exception as update_exc:  # noqa: BLE001
      logger.error("Failed to update job status after processing error: %s", update_exc)
    return None


def trigger_job_processing(background_tasks: BackgroundTasks, job_id: str, settings: Settings) -> None:
  """Schedule background processing via the configured task enqueuer."""

  if not settings.jobs_auto_process:
    return

  async def _dispatch() -> None:
    try:
      await get_task_enqueuer(settings).enqueue(job_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed to enqueue job %s: %s", job_id, exc, exc_info=True)
      # A job that never reaches a worker would stay pending forever.
      await _fail_if_active(job_id, settings, error="Enqueue failed: TASK_ENQUEUE_FAILED", kind="transient")

  # Dispatch after the response so the client is not held up by Cloud Tasks or the local dispatcher.
  background_tasks.add_task(_dispatch)


async def sweep_expired_leases(settings: Settings) -> list[JobRecord]:
  """Fail processing jobs whose worker lease has run out."""
  failed = await fail_expired_leases(_get_jobs_repo(settings))
  if failed:
    logger.warning("Lease sweep failed %d job(s)", len(failed))
  return failed

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status

from korsify.api.models import SweepResponse, TaskPayload
from korsify.config import Settings, get_settings
from korsify.services.jobs import process_job_sync, sweep_expired_leases

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


def require_task_secret(
  settings: Annotated[Settings, Depends(get_settings)],
  authorization: Annotated[str | None, Header()] = None,
  x_korsify_task_secret: Annotated[str | None, Header()] = None,
) -> None:
  """Reject internal task calls that do not carry the shared secret."""
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  # Cloud Tasks OIDC uses Authorization for Cloud Run invoker auth, so accept a dedicated secret header too.
  shared_secret_valid = secrets.compare_digest((x_korsify_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), expected_auth)
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


@router.post("/process-job", status_code=status.HTTP_200_OK, dependencies=[Depends(require_task_secret)])
async def process_job_task(payload: TaskPayload, background_tasks: BackgroundTasks, settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, str]:
  """
  Handler for Cloud Tasks (and local simulation).
  Accepts the task quickly and processes the job in the background.
  """
  logger.info("Received task for job %s", payload.job_id)
  background_tasks.add_task(process_job_sync, payload.job_id, settings)
  return {"status": "accepted"}


@router.post("/sweep-leases", response_model=SweepResponse, dependencies=[Depends(require_task_secret)])
async def sweep_leases_task(settings: Annotated[Settings, Depends(get_settings)]) -> SweepResponse:
  """Fail processing jobs whose worker lease expired; meant for a scheduler."""
  failed = await sweep_expired_leases(settings)
  return SweepResponse(failed_job_ids=[record.job_id for record in failed])

from __future__ import annotations

import json
import logging
from typing import Any

from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from korsify.config import Settings
from korsify.services.tasks.interface import TaskEnqueuer
from korsify.services.tasks.local import PROCESS_JOB_PATH

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues tasks to Google Cloud Tasks."""

  def __init__(self, settings: Settings, client: Any | None = None) -> None:
    self.settings = settings
    self.client = client or tasks_v2.CloudTasksClient()

  def build_task(self, job_id: str) -> dict[str, Any]:
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured.")
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")

    # Authorization carries the OIDC token for Cloud Run, so the secret travels in its own header.
    http_request: dict[str, Any] = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": f"{self.settings.base_url.rstrip('/')}{PROCESS_JOB_PATH}",
      "headers": {"Content-Type": "application/json", "X-Korsify-Task-Secret": self.settings.task_secret},
      "body": json.dumps({"job_id": job_id}).encode(),
    }
    if self.settings.cloud_run_invoker_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_run_invoker_service_account}
    return {"http_request": http_request}

  async def enqueue(self, job_id: str) -> None:
    """Enqueue a job to Cloud Tasks."""
    if not self.settings.cloud_tasks_queue_path:
      raise RuntimeError("Cloud Tasks queue path not configured.")

    task = self.build_task(job_id)
    # The client is synchronous; keep it off the event loop.
    response = await run_in_threadpool(self.client.create_task, request={"parent": self.settings.cloud_tasks_queue_path, "task": task})
    logger.info("Enqueued task %s for job %s", response.name, job_id)

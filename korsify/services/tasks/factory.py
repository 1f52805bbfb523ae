from __future__ import annotations

from korsify.config import Settings
from korsify.services.tasks.gcp import CloudTasksEnqueuer
from korsify.services.tasks.interface import TaskEnqueuer
from korsify.services.tasks.local import LocalHttpEnqueuer


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "gcp":
    return CloudTasksEnqueuer(settings)
  return LocalHttpEnqueuer(settings)

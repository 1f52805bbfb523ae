"""Job progress tracking for one worker run."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from korsify.jobs import state
from korsify.jobs.errors import JobLeaseLostError
from korsify.jobs.models import ErrorKind, JobPhase, JobRecord
from korsify.storage.jobs_repo import MAX_EVENT_LOGS, JobsRepository

MAX_TRACKED_LOGS = MAX_EVENT_LOGS

# (entered, finished) progress for each phase.
PROGRESS_BANDS: dict[JobPhase, tuple[int, int]] = {
  "document_analysis": (10, 30),
  "content_analysis": (35, 50),
  "content_generation": (55, 85),
  "validation": (90, 95),
  "finalization": (96, 100),
}
OUTLINE_PROGRESS = 60
MODULE_BATCHES_END = 80

logger = logging.getLogger(__name__)


def batch_progress(batch_index: int, batch_count: int) -> int:
  """Spread module batches evenly between the outline and the end of generation."""

  if batch_count <= 0:
    return MODULE_BATCHES_END
  span = MODULE_BATCHES_END - OUTLINE_PROGRESS
  return round(OUTLINE_PROGRESS + span * (batch_index + 1) / batch_count)


class JobProgressTracker:
  """Persist phase, progress and log updates for a claimed job.

  Every write is a compare-and-set on the job version and renews the worker
  lease. When the write loses, the job was changed by someone else (lease
  sweep, another worker) and ``JobLeaseLostError`` is raised so the caller
  stops without touching the row again.
  """

  def __init__(self, *, job: JobRecord, jobs_repo: JobsRepository, worker_id: str, lease_seconds: int) -> None:
    self._job = job
    self._jobs_repo = jobs_repo
    self._worker_id = worker_id
    self._lease_seconds = lease_seconds
    self._logs: list[str] = list(job.logs)[-MAX_TRACKED_LOGS:]
    self._pending_logs: list[str] = []

  @property
  def job(self) -> JobRecord:
    return self._job

  @property
  def logs(self) -> list[str]:
    """Return a copy of the tracked logs."""

    return list(self._logs)

  def add_logs(self, *messages: str) -> None:
    """Queue log lines for the next write while preserving the rolling window."""

    for message in messages:
      if not message:
        continue
      self._logs.append(message)
      self._pending_logs.append(message)
    if len(self._logs) > MAX_TRACKED_LOGS:
      self._logs = self._logs[-MAX_TRACKED_LOGS:]

  def extend_logs(self, messages: Iterable[str]) -> None:
    self.add_logs(*messages)

  async def update(self, *, phase: JobPhase, progress: int, message: str | None = None) -> JobRecord:
    """Record a phase/progress checkpoint and renew the lease."""

    if message:
      self.add_logs(message)
    changes = state.advance(self._job, phase=phase, progress=progress)
    changes.update(state.renew_lease(self._job, worker_id=self._worker_id, lease_seconds=self._lease_seconds))
    return await self._write(changes)

  async def enter_phase(self, phase: JobPhase, *, message: str | None = None) -> JobRecord:
    return await self.update(phase=phase, progress=PROGRESS_BANDS[phase][0], message=message)

  async def finish_phase(self, phase: JobPhase, *, message: str | None = None) -> JobRecord:
    return await self.update(phase=phase, progress=PROGRESS_BANDS[phase][1], message=message)

  async def complete(self, *, result: dict[str, Any], message: str | None = None) -> JobRecord:
    """Move the job to completed with its result payload."""

    if message:
      self.add_logs(message)
    return await self._write(state.complete(self._job, result=result))

  async def fail(self, *, error: str, kind: ErrorKind) -> JobRecord | None:
    """Move the job to failed.

    Returns ``None`` when the row changed underneath this worker; whoever
    changed it owns the outcome.
    """

    self.add_logs(f"Job failed ({kind}): {error}")
    try:
      return await self._write(state.fail(self._job, error=error, kind=kind))
    except JobLeaseLostError:
      logger.warning("Job %s changed before its failure could be recorded: %s", self._job.job_id, error)
      return None

  async def _write(self, changes: dict[str, Any]) -> JobRecord:
    logs = list(self._pending_logs)
    record = await self._jobs_repo.update_job(self._job.job_id, changes=changes, expected_version=self._job.version, logs=logs)
    if record is None:
      raise JobLeaseLostError(f"Job {self._job.job_id} was modified by another writer (expected version {self._job.version}).")
    self._pending_logs.clear()
    self._job = record
    return record

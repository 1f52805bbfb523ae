"""Status and phase transitions for AI processing jobs.

Every mutation of a job's lifecycle fields goes through one of the functions
here. Each returns the field changes to persist rather than writing them, so
the same rules apply to the Postgres repository, in-memory doubles, and the
API layer. Violations raise ``InvalidTransitionError``.

Lifecycle::

  pending -> processing -> completed
                        \\-> failed
  pending -> failed

While processing, ``phase`` walks ``PHASES`` forward only and ``progress``
never decreases. ``completed`` is reachable only from ``finalization``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from korsify.jobs.models import ACTIVE_STATUSES, JOB_STATUSES, PHASES, ErrorKind, JobPhase, JobRecord, phase_index

_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_ERROR_KINDS = ("transient", "permanent")


class InvalidTransitionError(Exception):
  """Raised when a requested change would break the job lifecycle contract."""

  def __init__(self, job_id: str, message: str) -> None:
    super().__init__(message)
    self.job_id = job_id


def format_timestamp(moment: datetime) -> str:
  return moment.astimezone(UTC).strftime(_DATE_FORMAT)


def parse_timestamp(raw: str) -> datetime:
  return datetime.strptime(raw, _DATE_FORMAT).replace(tzinfo=UTC)


def utc_now() -> datetime:
  return datetime.now(UTC)


def _require_status(job: JobRecord, allowed: set[str] | frozenset[str], action: str) -> None:
  if job.status not in allowed:
    raise InvalidTransitionError(job.job_id, f"Cannot {action} job {job.job_id} in status '{job.status}'.")


def start(job: JobRecord, *, worker_id: str, lease_seconds: int, now: datetime | None = None) -> dict[str, Any]:
  """Move a pending job into processing and claim it for one worker."""
  _require_status(job, {"pending"}, "start")
  if job.claimed_by is not None:
    raise InvalidTransitionError(job.job_id, f"Job {job.job_id} is already claimed by {job.claimed_by}.")
  moment = now or utc_now()
  return {
    "status": "processing",
    "phase": PHASES[0],
    "progress": 0,
    "claimed_by": worker_id,
    "lease_expires_at": format_timestamp(moment + timedelta(seconds=lease_seconds)),
    "started_at": format_timestamp(moment),
  }


def advance(job: JobRecord, *, phase: JobPhase, progress: int) -> dict[str, Any]:
  """Record phase/progress for a processing job.

  The phase may stay the same or move later; progress is clamped so it never
  drops below the stored value nor exceeds 100.
  """
  _require_status(job, {"processing"}, "advance")
  target_index = phase_index(phase)
  current_index = phase_index(job.phase)
  if target_index < current_index:
    raise InvalidTransitionError(job.job_id, f"Job {job.job_id} cannot move back from '{job.phase}' to '{phase}'.")
  if progress < 0:
    raise ValueError("Progress must not be negative.")
  return {"phase": phase, "progress": max(job.progress, min(int(progress), 100))}


def renew_lease(job: JobRecord, *, worker_id: str, lease_seconds: int, now: datetime | None = None) -> dict[str, Any]:
  """Extend the lease held by the claiming worker."""
  _require_status(job, {"processing"}, "renew the lease of")
  if job.claimed_by != worker_id:
    raise InvalidTransitionError(job.job_id, f"Worker {worker_id} does not hold the lease on job {job.job_id}.")
  moment = now or utc_now()
  return {"lease_expires_at": format_timestamp(moment + timedelta(seconds=lease_seconds))}


def complete(job: JobRecord, *, result: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
  """Finish a job that has reached finalization."""
  _require_status(job, {"processing"}, "complete")
  if job.phase != PHASES[-1]:
    raise InvalidTransitionError(job.job_id, f"Job {job.job_id} can only complete from '{PHASES[-1]}', not '{job.phase}'.")
  if result is None:
    raise InvalidTransitionError(job.job_id, f"Job {job.job_id} cannot complete without a result.")
  return {
    "status": "completed",
    "progress": 100,
    "result": result,
    "error": None,
    "error_kind": None,
    "claimed_by": None,
    "lease_expires_at": None,
    "completed_at": format_timestamp(now or utc_now()),
  }


def fail(job: JobRecord, *, error: str, kind: ErrorKind = "permanent", now: datetime | None = None) -> dict[str, Any]:
  """Fail a pending or processing job with a human-readable diagnostic."""
  _require_status(job, ACTIVE_STATUSES, "fail")
  message = (error or "").strip()
  if not message:
    raise ValueError("A failed job requires a non-empty error message.")
  if kind not in _ERROR_KINDS:
    raise ValueError(f"Unknown error kind: {kind}")
  return {
    "status": "failed",
    "result": None,
    "error": message,
    "error_kind": kind,
    "claimed_by": None,
    "lease_expires_at": None,
    "completed_at": format_timestamp(now or utc_now()),
  }


def lease_expired(job: JobRecord, *, now: datetime | None = None) -> bool:
  """Return True when a processing job's lease deadline has passed."""
  if job.status != "processing" or job.lease_expires_at is None:
    return False
  return parse_timestamp(job.lease_expires_at) <= (now or utc_now())


def apply(job: JobRecord, changes: dict[str, Any]) -> JobRecord:
  """Return a copy of the job with the changes applied."""
  return replace(job, **changes)


def check_invariants(job: JobRecord) -> list[str]:
  """Return human-readable descriptions of every violated lifecycle invariant."""
  violations: list[str] = []
  if job.status not in JOB_STATUSES:
    violations.append(f"unknown status '{job.status}'")
  if job.status == "completed":
    if job.result is None:
      violations.append("completed job has no result")
    if job.error is not None:
      violations.append("completed job has an error")
  if job.status == "failed":
    if not job.error:
      violations.append("failed job has no error")
    if job.result is not None:
      violations.append("failed job has a result")
  if job.status == "processing" and job.phase not in PHASES:
    violations.append(f"processing job has invalid phase '{job.phase}'")
  if not 0 <= job.progress <= 100:
    violations.append(f"progress {job.progress} outside 0..100")
  return violations

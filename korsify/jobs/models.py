"""Domain models for document-to-course AI processing jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, get_args

JobStatus = Literal["pending", "processing", "completed", "failed"]
JobPhase = Literal["document_analysis", "content_analysis", "content_generation", "validation", "finalization"]
ErrorKind = Literal["transient", "permanent"]

# Fixed processing order; a job may only move forward through it.
PHASES: tuple[JobPhase, ...] = get_args(JobPhase)
JOB_STATUSES: tuple[JobStatus, ...] = get_args(JobStatus)
ACTIVE_STATUSES: frozenset[str] = frozenset({"pending", "processing"})
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


def phase_index(phase: str | None) -> int:
  """Return the position of a phase in the processing order, -1 when unset."""
  if phase is None:
    return -1
  try:
    return PHASES.index(phase)  # type: ignore[arg-type]
  except ValueError as exc:
    raise ValueError(f"Unknown job phase: {phase}") from exc


@dataclass
class JobRecord:
  """Represents one document-to-course generation run."""

  job_id: str
  document_id: str
  status: JobStatus
  created_at: str
  updated_at: str
  course_id: str | None = None
  user_id: str | None = None
  options: dict[str, Any] = field(default_factory=dict)
  phase: JobPhase | None = None
  progress: int = 0
  result: dict[str, Any] | None = None
  error: str | None = None
  error_kind: ErrorKind | None = None
  version: int = 0
  claimed_by: str | None = None
  lease_expires_at: str | None = None
  retry_of_job_id: str | None = None
  started_at: str | None = None
  completed_at: str | None = None
  logs: list[str] = field(default_factory=list)

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

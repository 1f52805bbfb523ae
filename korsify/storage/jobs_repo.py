"""Storage interfaces for AI processing jobs."""

from __future__ import annotations

from typing import Any, Protocol

from korsify.jobs.models import JobRecord

MAX_EVENT_LOGS = 100


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def list_jobs_for_document(self, document_id: str, *, limit: int = 20) -> list[JobRecord]:
    """Return jobs for a document, newest first."""

  async def update_job(self, job_id: str, *, changes: dict[str, Any], expected_version: int | None = None, logs: list[str] | None = None) -> JobRecord | None:
    """Apply changes and bump the row version.

    When ``expected_version`` is given the write only lands if the stored
    version still matches. Returns ``None`` when the job is missing or the
    version check lost.
    """

  async def find_expired_leases(self, *, now: str, limit: int = 50) -> list[JobRecord]:
    """Return processing jobs whose lease deadline is at or before ``now``."""

  async def append_event(self, *, job_id: str, event_type: str, message: str, payload_json: dict | None = None) -> None:
    """Append one timeline event for a job."""

  async def list_events(self, *, job_id: str, limit: int = MAX_EVENT_LOGS) -> list[str]:
    """List recent event messages for a job, oldest first."""

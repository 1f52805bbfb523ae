"""Shared fixtures: settings and in-memory repositories for the job pipeline."""

from __future__ import annotations

import os
from dataclasses import replace
from typing import Any

# Ensure required settings are available before importing the app.
os.environ.setdefault("KORSIFY_ALLOWED_ORIGINS", "http://localhost")
os.environ["KORSIFY_JOBS_AUTO_PROCESS"] = "0"
os.environ["KORSIFY_GENERATOR_PROVIDER"] = "dummy"
os.environ["KORSIFY_TASK_SECRET"] = "test-task-secret"
os.environ.pop("KORSIFY_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

import pytest  # noqa: E402

from korsify.config import Settings, get_settings  # noqa: E402
from korsify.jobs import state  # noqa: E402
from korsify.jobs.models import JobRecord  # noqa: E402
from korsify.storage.courses_repo import CoursePlan  # noqa: E402
from korsify.storage.documents_repo import DocumentRecord  # noqa: E402
from korsify.storage.jobs_repo import MAX_EVENT_LOGS  # noqa: E402


class InMemoryJobsRepo:
  """Jobs repository double with the same version check as Postgres."""

  def __init__(self) -> None:
    self.jobs: dict[str, JobRecord] = {}
    self.events: list[dict[str, Any]] = []
    self.history: list[JobRecord] = []

  async def create_job(self, record: JobRecord) -> None:
    self.jobs[record.job_id] = record

  async def get_job(self, job_id: str) -> JobRecord | None:
    return self.jobs.get(job_id)

  async def list_jobs_for_document(self, document_id: str, *, limit: int = 20) -> list[JobRecord]:
    # Newest first; insertion order breaks ties between identical timestamps.
    records = [record for record in reversed(list(self.jobs.values())) if record.document_id == document_id]
    records.sort(key=lambda record: record.created_at, reverse=True)
    return records[:limit]

  async def update_job(self, job_id: str, *, changes: dict[str, Any], expected_version: int | None = None, logs: list[str] | None = None) -> JobRecord | None:
    record = self.jobs.get(job_id)
    if record is None:
      return None
    if expected_version is not None and record.version != expected_version:
      return None

    merged_logs = (list(record.logs) + list(logs or []))[-MAX_EVENT_LOGS:]
    updated = replace(record, **changes, version=record.version + 1, logs=merged_logs)
    violations = state.check_invariants(updated)
    assert not violations, violations
    self.jobs[job_id] = updated
    self.history.append(updated)
    return updated

  async def find_expired_leases(self, *, now: str, limit: int = 50) -> list[JobRecord]:
    expired = [record for record in self.jobs.values() if record.status == "processing" and record.lease_expires_at is not None and record.lease_expires_at <= now]
    return expired[:limit]

  async def append_event(self, *, job_id: str, event_type: str, message: str, payload_json: dict | None = None) -> None:
    self.events.append({"job_id": job_id, "event_type": event_type, "message": message, "payload_json": payload_json})

  async def list_events(self, *, job_id: str, limit: int = MAX_EVENT_LOGS) -> list[str]:
    return [event["message"] for event in self.events if event["job_id"] == job_id][-limit:]


class InMemoryDocumentsRepo:
  def __init__(self, *documents: DocumentRecord) -> None:
    self.documents: dict[str, DocumentRecord] = {document.document_id: document for document in documents}
    self.saved: dict[str, str] = {}

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    return self.documents.get(document_id)

  async def save_processed_content(self, document_id: str, content: str) -> None:
    self.saved[document_id] = content
    self.documents[document_id] = replace(self.documents[document_id], processed_content=content)


class InMemoryCoursesRepo:
  def __init__(self, *existing: str) -> None:
    self.existing: set[str] = set(existing)
    self.plans: list[CoursePlan] = []

  async def course_exists(self, course_id: str) -> bool:
    return course_id in self.existing

  async def save_course_plan(self, plan: CoursePlan) -> None:
    self.existing.add(plan.course.course_id)
    self.plans.append(plan)


SAMPLE_TEXT = (
  "Photosynthesis converts light energy into chemical energy. Chlorophyll absorbs sunlight inside chloroplasts. "
  "Glucose stores energy for respiration. Oxygen escapes through stomata while carbon dioxide enters the leaf. "
  "Enzymes regulate every metabolic pathway and temperature changes their activity."
)


def make_job(**overrides: Any) -> JobRecord:
  values: dict[str, Any] = {
    "job_id": "job-1",
    "document_id": "doc-1",
    "status": "pending",
    "created_at": "2026-01-01T00:00:00Z",
    "updated_at": "2026-01-01T00:00:00Z",
    "course_id": "course-1",
    "user_id": "user-1",
    "options": {"moduleCount": 2, "questionsPerQuiz": 3},
    "logs": ["Job queued."],
  }
  values.update(overrides)
  return JobRecord(**values)


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  return replace(get_settings(), generator_provider="dummy", quiz_max_attempts=3, quiz_retry_delay_seconds=0, job_lease_seconds=600, jobs_auto_process=False)


@pytest.fixture
def jobs_repo() -> InMemoryJobsRepo:
  return InMemoryJobsRepo()


@pytest.fixture
def document() -> DocumentRecord:
  return DocumentRecord(document_id="doc-1", file_name="biology.txt", file_type="text/plain", storage_url="/nonexistent/biology.txt", uploaded_by="uploader-1", processed_content=SAMPLE_TEXT, file_size=len(SAMPLE_TEXT))


@pytest.fixture
def documents_repo(document: DocumentRecord) -> InMemoryDocumentsRepo:
  return InMemoryDocumentsRepo(document)


@pytest.fixture
def courses_repo() -> InMemoryCoursesRepo:
  return InMemoryCoursesRepo()


@pytest.fixture
def job_factory():
  return make_job

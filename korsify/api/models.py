from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic.alias_generators import to_camel

from korsify.jobs.models import ErrorKind, JobPhase, JobRecord, JobStatus
from korsify.schema.course_content import GenerationOptions

_CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobCreateRequest(BaseModel):
  """Request payload for starting course generation from a document."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

  document_id: StrictStr = Field(min_length=1, description="Uploaded document to build the course from.")
  course_id: StrictStr | None = Field(default=None, min_length=1, description="Existing course to generate into; a draft course is created when omitted.")
  user_id: StrictStr | None = Field(default=None, min_length=1, description="Requesting creator; defaults to the document uploader.")
  options: GenerationOptions = Field(default_factory=GenerationOptions)


class JobStatusResponse(BaseModel):
  """Polling view of one AI processing job."""

  model_config = _CAMEL_CONFIG

  job_id: str
  document_id: str
  course_id: str | None = None
  user_id: str | None = None
  status: JobStatus
  phase: JobPhase | None = None
  progress: int = 0
  result: dict[str, Any] | None = None
  error: str | None = None
  error_kind: ErrorKind | None = None
  retry_of_job_id: str | None = None
  created_at: str
  updated_at: str
  started_at: str | None = None
  completed_at: str | None = None
  logs: list[str] = Field(default_factory=list)

  @classmethod
  def from_record(cls, record: JobRecord) -> JobStatusResponse:
    return cls(
      job_id=record.job_id,
      document_id=record.document_id,
      course_id=record.course_id,
      user_id=record.user_id,
      status=record.status,
      phase=record.phase,
      progress=record.progress,
      result=record.result,
      error=record.error,
      error_kind=record.error_kind,
      retry_of_job_id=record.retry_of_job_id,
      created_at=record.created_at,
      updated_at=record.updated_at,
      started_at=record.started_at,
      completed_at=record.completed_at,
      logs=list(record.logs),
    )


class JobListResponse(BaseModel):
  model_config = _CAMEL_CONFIG

  jobs: list[JobStatusResponse]


class TaskPayload(BaseModel):
  job_id: StrictStr = Field(min_length=1)


class SweepResponse(BaseModel):
  model_config = _CAMEL_CONFIG

  failed_job_ids: list[str]

from __future__ import annotations

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from korsify.core.database import Base

_UTC_NOW_ISO = text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')""")


class AiProcessingJob(Base):
  __tablename__ = "ai_processing_jobs"
  __table_args__ = (
    CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name="ck_ai_processing_jobs_status"),
    CheckConstraint("phase IS NULL OR phase IN ('document_analysis', 'content_analysis', 'content_generation', 'validation', 'finalization')", name="ck_ai_processing_jobs_phase"),
    CheckConstraint("progress >= 0 AND progress <= 100", name="ck_ai_processing_jobs_progress"),
    CheckConstraint("status <> 'completed' OR (result IS NOT NULL AND error IS NULL)", name="ck_ai_processing_jobs_completed_result"),
    CheckConstraint("status <> 'failed' OR (error IS NOT NULL AND result IS NULL)", name="ck_ai_processing_jobs_failed_error"),
    Index("ix_ai_processing_jobs_status_lease", "status", "lease_expires_at"),
  )

  id: Mapped[str] = mapped_column(String, primary_key=True)
  document_id: Mapped[str] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
  course_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  options_json: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
  status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'pending'"))
  phase: Mapped[str | None] = mapped_column(String, nullable=True)
  progress: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
  result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  error_kind: Mapped[str | None] = mapped_column(String, nullable=True)
  version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
  claimed_by: Mapped[str | None] = mapped_column(String, nullable=True)
  lease_expires_at: Mapped[str | None] = mapped_column(String, nullable=True)
  retry_of_job_id: Mapped[str | None] = mapped_column(ForeignKey("ai_processing_jobs.id", ondelete="SET NULL"), nullable=True, index=True)
  created_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_UTC_NOW_ISO)
  updated_at: Mapped[str] = mapped_column(String, nullable=False, server_default=_UTC_NOW_ISO)
  started_at: Mapped[str | None] = mapped_column(String, nullable=True)
  completed_at: Mapped[str | None] = mapped_column(String, nullable=True)


class AiProcessingJobEvent(Base):
  __tablename__ = "ai_processing_job_events"

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("ai_processing_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
  event_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  payload_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

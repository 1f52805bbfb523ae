"""create course generation tables

Revision ID: 4f1c2a7d9e03
Revises:
Create Date: 2026-10-18 09:12:44.201735

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "4f1c2a7d9e03"
down_revision = None
branch_labels = None
depends_on = None

_UTC_NOW_ISO = sa.text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')""")


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "documents",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("file_name", sa.String(), nullable=False),
    sa.Column("file_size", sa.Integer(), nullable=False),
    sa.Column("file_type", sa.String(), nullable=False),
    sa.Column("storage_url", sa.String(), nullable=False),
    sa.Column("processed_content", sa.Text(), nullable=True),
    sa.Column("uploaded_by", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'pending'")),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
  )
  op.create_index("ix_documents_uploaded_by", "documents", ["uploaded_by"])

  op.create_table(
    "courses",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("creator_id", sa.String(), nullable=False),
    sa.Column("document_id", sa.String(), nullable=True),
    sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'draft'")),
    sa.Column("language", sa.String(), nullable=True, server_default=sa.text("'en'")),
    sa.Column("target_audience", sa.String(), nullable=True),
    sa.Column("content_focus", sa.String(), nullable=True),
    sa.Column("difficulty_level", sa.String(), nullable=True, server_default=sa.text("'beginner'")),
    sa.Column("estimated_duration", sa.Integer(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
  )
  op.create_index("ix_courses_creator_id", "courses", ["creator_id"])
  op.create_index("ix_courses_document_id", "courses", ["document_id"])

  op.create_table(
    "modules",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("course_id", sa.String(), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("order_index", sa.Integer(), nullable=False),
    sa.Column("estimated_duration", sa.Integer(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
  )
  op.create_index("ix_modules_course_id", "modules", ["course_id"])

  op.create_table(
    "lessons",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("module_id", sa.String(), sa.ForeignKey("modules.id", ondelete="CASCADE"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("order_index", sa.Integer(), nullable=False),
    sa.Column("estimated_duration", sa.Integer(), nullable=True),
    sa.Column("video_url", sa.String(), nullable=True),
    sa.Column("attachments", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
    sa.Column("source_references", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
  )
  op.create_index("ix_lessons_module_id", "lessons", ["module_id"])

  op.create_table(
    "quizzes",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("lesson_id", sa.String(), sa.ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True),
    sa.Column("module_id", sa.String(), sa.ForeignKey("modules.id", ondelete="CASCADE"), nullable=True),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("questions", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("passing_score", sa.Integer(), nullable=False, server_default=sa.text("70")),
    sa.Column("max_attempts", sa.Integer(), nullable=False, server_default=sa.text("3")),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
  )
  op.create_index("ix_quizzes_lesson_id", "quizzes", ["lesson_id"])
  op.create_index("ix_quizzes_module_id", "quizzes", ["module_id"])

  op.create_table(
    "ai_processing_jobs",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("document_id", sa.String(), sa.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False),
    sa.Column("course_id", sa.String(), nullable=True),
    sa.Column("user_id", sa.String(), nullable=True),
    sa.Column("options_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'pending'")),
    sa.Column("phase", sa.String(), nullable=True),
    sa.Column("progress", sa.Integer(), nullable=False, server_default=sa.text("0")),
    sa.Column("result", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
    sa.Column("error_kind", sa.String(), nullable=True),
    sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
    sa.Column("claimed_by", sa.String(), nullable=True),
    sa.Column("lease_expires_at", sa.String(), nullable=True),
    sa.Column("retry_of_job_id", sa.String(), sa.ForeignKey("ai_processing_jobs.id", ondelete="SET NULL"), nullable=True),
    sa.Column("created_at", sa.String(), nullable=False, server_default=_UTC_NOW_ISO),
    sa.Column("updated_at", sa.String(), nullable=False, server_default=_UTC_NOW_ISO),
    sa.Column("started_at", sa.String(), nullable=True),
    sa.Column("completed_at", sa.String(), nullable=True),
    sa.CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name="ck_ai_processing_jobs_status"),
    sa.CheckConstraint("phase IS NULL OR phase IN ('document_analysis', 'content_analysis', 'content_generation', 'validation', 'finalization')", name="ck_ai_processing_jobs_phase"),
    sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_ai_processing_jobs_progress"),
    sa.CheckConstraint("status <> 'completed' OR (result IS NOT NULL AND error IS NULL)", name="ck_ai_processing_jobs_completed_result"),
    sa.CheckConstraint("status <> 'failed' OR (error IS NOT NULL AND result IS NULL)", name="ck_ai_processing_jobs_failed_error"),
  )
  op.create_index("ix_ai_processing_jobs_document_id", "ai_processing_jobs", ["document_id"])
  op.create_index("ix_ai_processing_jobs_course_id", "ai_processing_jobs", ["course_id"])
  op.create_index("ix_ai_processing_jobs_user_id", "ai_processing_jobs", ["user_id"])
  op.create_index("ix_ai_processing_jobs_retry_of_job_id", "ai_processing_jobs", ["retry_of_job_id"])
  op.create_index("ix_ai_processing_jobs_status_lease", "ai_processing_jobs", ["status", "lease_expires_at"])

  op.create_table(
    "ai_processing_job_events",
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("job_id", sa.String(), sa.ForeignKey("ai_processing_jobs.id", ondelete="CASCADE"), nullable=False),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("payload_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
  )
  op.create_index("ix_ai_processing_job_events_job_id", "ai_processing_job_events", ["job_id"])
  op.create_index("ix_ai_processing_job_events_event_type", "ai_processing_job_events", ["event_type"])


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_ai_processing_job_events_event_type", table_name="ai_processing_job_events")
  op.drop_index("ix_ai_processing_job_events_job_id", table_name="ai_processing_job_events")
  op.drop_table("ai_processing_job_events")
  op.drop_index("ix_ai_processing_jobs_status_lease", table_name="ai_processing_jobs")
  op.drop_index("ix_ai_processing_jobs_retry_of_job_id", table_name="ai_processing_jobs")
  op.drop_index("ix_ai_processing_jobs_user_id", table_name="ai_processing_jobs")
  op.drop_index("ix_ai_processing_jobs_course_id", table_name="ai_processing_jobs")
  op.drop_index("ix_ai_processing_jobs_document_id", table_name="ai_processing_jobs")
  op.drop_table("ai_processing_jobs")
  op.drop_index("ix_quizzes_module_id", table_name="quizzes")
  op.drop_index("ix_quizzes_lesson_id", table_name="quizzes")
  op.drop_table("quizzes")
  op.drop_index("ix_lessons_module_id", table_name="lessons")
  op.drop_table("lessons")
  op.drop_index("ix_modules_course_id", table_name="modules")
  op.drop_table("modules")
  op.drop_index("ix_courses_document_id", table_name="courses")
  op.drop_index("ix_courses_creator_id", table_name="courses")
  op.drop_table("courses")
  op.drop_index("ix_documents_uploaded_by", table_name="documents")
  op.drop_table("documents")

"""Course tables read and written by the generation pipeline.

Only the columns the pipeline touches are mapped here; enrollment, progress
and analytics tables belong to the learner-facing application.
"""

from __future__ import annotations

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from korsify.core.database import Base


class Document(Base):
  __tablename__ = "documents"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  file_name: Mapped[str] = mapped_column(String, nullable=False)
  file_size: Mapped[int] = mapped_column(Integer, nullable=False)
  file_type: Mapped[str] = mapped_column(String, nullable=False)
  storage_url: Mapped[str] = mapped_column(String, nullable=False)
  processed_content: Mapped[str | None] = mapped_column(Text, nullable=True)
  uploaded_by: Mapped[str] = mapped_column(String, nullable=False, index=True)
  status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'pending'"))
  created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Course(Base):
  __tablename__ = "courses"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  creator_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  document_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'draft'"))
  language: Mapped[str | None] = mapped_column(String, nullable=True, server_default=text("'en'"))
  target_audience: Mapped[str | None] = mapped_column(String, nullable=True)
  content_focus: Mapped[str | None] = mapped_column(String, nullable=True)
  difficulty_level: Mapped[str | None] = mapped_column(String, nullable=True, server_default=text("'beginner'"))
  estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
  created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class Module(Base):
  __tablename__ = "modules"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  course_id: Mapped[str] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  order_index: Mapped[int] = mapped_column(Integer, nullable=False)
  estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
  created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Lesson(Base):
  __tablename__ = "lessons"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  module_id: Mapped[str] = mapped_column(ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  order_index: Mapped[int] = mapped_column(Integer, nullable=False)
  estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
  video_url: Mapped[str | None] = mapped_column(String, nullable=True)
  attachments: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  source_references: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Quiz(Base):
  __tablename__ = "quizzes"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  lesson_id: Mapped[str | None] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True, index=True)
  module_id: Mapped[str | None] = mapped_column(ForeignKey("modules.id", ondelete="CASCADE"), nullable=True, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  questions: Mapped[list] = mapped_column(JSONB, nullable=False)
  passing_score: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("70"))
  max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("3"))
  created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

"""Postgres-backed repository for materialized courses using SQLAlchemy."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from korsify.core.database import get_session_factory
from korsify.schema.courses import Course, Lesson, Module, Quiz
from korsify.storage.courses_repo import CoursePlan, CoursesRepository

logger = logging.getLogger(__name__)


class PostgresCoursesRepository(CoursesRepository):
  """Persist generated courses to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def course_exists(self, course_id: str) -> bool:
    async with self._session_factory() as session:
      found = await session.scalar(select(Course.id).where(Course.id == course_id))
      return found is not None

  async def save_course_plan(self, plan: CoursePlan) -> None:
    header = plan.course
    async with self._session_factory() as session:
      async with session.begin():
        if header.create:
          session.add(
            Course(
              id=header.course_id,
              title=header.title,
              description=header.description,
              creator_id=header.creator_id,
              document_id=header.document_id,
              status="draft",
              language=header.language,
              target_audience=header.target_audience,
              content_focus=header.content_focus,
              difficulty_level=header.difficulty_level,
              estimated_duration=header.estimated_duration,
            )
          )
        else:
          course = await session.get(Course, header.course_id)
          if course is None:
            raise RuntimeError(f"Course {header.course_id} does not exist.")
          course.title = header.title
          course.description = header.description
          course.estimated_duration = header.estimated_duration
          # Regenerating into an existing course replaces its previous modules.
          await session.execute(delete(Module).where(Module.course_id == header.course_id))
        await session.flush()

        for module in plan.modules:
          session.add(Module(id=module.module_id, course_id=module.course_id, title=module.title, description=module.description, order_index=module.order_index, estimated_duration=module.estimated_duration))
        await session.flush()

        for lesson in plan.lessons:
          session.add(
            Lesson(
              id=lesson.lesson_id,
              module_id=lesson.module_id,
              title=lesson.title,
              content=lesson.content,
              order_index=lesson.order_index,
              estimated_duration=lesson.estimated_duration,
              attachments=[],
              source_references=lesson.source_references,
            )
          )
        await session.flush()

        for quiz in plan.quizzes:
          session.add(Quiz(id=quiz.quiz_id, module_id=quiz.module_id, lesson_id=quiz.lesson_id, title=quiz.title, questions=quiz.questions, passing_score=quiz.passing_score, max_attempts=quiz.max_attempts))

    logger.info("Materialized course %s: %d modules, %d lessons, %d quizzes", header.course_id, len(plan.modules), len(plan.lessons), len(plan.quizzes))

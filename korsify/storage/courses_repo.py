"""Storage interfaces and records for materialized courses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class QuizRow:
  quiz_id: str
  title: str
  questions: list[dict[str, Any]]
  module_id: str | None = None
  lesson_id: str | None = None
  passing_score: int = 70
  max_attempts: int = 3


@dataclass(frozen=True)
class LessonRow:
  lesson_id: str
  module_id: str
  title: str
  content: str
  order_index: int
  estimated_duration: int | None = None
  source_references: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ModuleRow:
  module_id: str
  course_id: str
  title: str
  description: str
  order_index: int
  estimated_duration: int | None = None


@dataclass(frozen=True)
class CourseRow:
  """Course header written alongside its modules.

  ``create`` is False when the course already exists and only its title and
  description should change.
  """

  course_id: str
  title: str
  description: str
  creator_id: str
  document_id: str
  create: bool
  language: str | None = None
  target_audience: str | None = None
  content_focus: str | None = None
  difficulty_level: str | None = None
  estimated_duration: int | None = None


@dataclass(frozen=True)
class CoursePlan:
  """Every row produced from one generated course structure."""

  course: CourseRow
  modules: list[ModuleRow]
  lessons: list[LessonRow]
  quizzes: list[QuizRow]


class CoursesRepository(Protocol):
  """Repository contract for course materialization."""

  async def course_exists(self, course_id: str) -> bool:
    """Return True when the course row exists."""

  async def save_course_plan(self, plan: CoursePlan) -> None:
    """Write the course, modules, lessons and quizzes atomically."""

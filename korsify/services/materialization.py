"""Turn a validated course structure into course, module, lesson and quiz rows."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from korsify.schema.course_content import CourseStructure, GenerationOptions, QuizContent
from korsify.services.deduplication import generate_unique_title, is_title_duplicate
from korsify.storage.courses_repo import CoursePlan, CourseRow, CoursesRepository, LessonRow, ModuleRow, QuizRow
from korsify.utils.ids import generate_row_id

TITLE_UNIQUENESS_THRESHOLD = 0.9
DEFAULT_LESSON_MINUTES = 10
PASSING_SCORE = 70
MAX_QUIZ_ATTEMPTS = 3

_CITATION_RE = re.compile(r"\[(\d+)\]")
_SENTENCE_END_RE = re.compile(r"[.!?]")
_TEXT_WINDOW = 200
_CONTEXT_BEFORE = 300
_CONTEXT_AFTER = 100

logger = logging.getLogger(__name__)


def module_title(position: int, title: str) -> str:
  """Prefix ``Module N:`` unless the model already did."""
  prefix = f"Module {position}:"
  return title if title.startswith(prefix) else f"{prefix} {title}"


def lesson_title(module_position: int, lesson_position: int, title: str) -> str:
  prefix = f"Lesson {module_position}.{lesson_position}:"
  return title if title.startswith(prefix) else f"{prefix} {title}"


def _unique(title: str, taken: list[str]) -> str:
  if is_title_duplicate(title, taken, TITLE_UNIQUENESS_THRESHOLD):
    renamed = generate_unique_title(title, taken)
    logger.info("Renamed duplicate title %r to %r", title, renamed)
    return renamed
  return title


def extract_source_references(content: str, document_id: str, document_name: str) -> list[dict[str, Any]]:
  """Build one source reference per ``[n]`` citation in lesson content.

  ``text`` is the sentence fragment leading up to the citation (within the
  previous 200 characters); ``context`` spans 300 characters before to 100
  after it, with offsets into the lesson content.
  """
  references: list[dict[str, Any]] = []
  for match in _CITATION_RE.finditer(content):
    number = int(match.group(1))
    before = content[max(0, match.start() - _TEXT_WINDOW) : match.start()]
    sentences = _SENTENCE_END_RE.split(before)
    text = sentences[-1].strip()
    if not text and len(sentences) > 1:
      text = sentences[-2].strip()
    if not text:
      text = before.strip()

    context_start = max(0, match.start() - _CONTEXT_BEFORE)
    context_end = min(len(content), match.start() + _CONTEXT_AFTER)
    references.append(
      {
        "id": f"ref-{document_id}-{number}",
        "documentId": document_id,
        "documentName": document_name,
        "text": text or f"Reference {number}",
        "context": content[context_start:context_end].strip(),
        "startOffset": context_start,
        "endOffset": context_end,
      }
    )
  return references


def _quiz_row(quiz: QuizContent, *, title: str, module_id: str, lesson_id: str | None, id_factory: Callable[[], str]) -> QuizRow:
  return QuizRow(quiz_id=id_factory(), title=title, questions=[question.to_payload() for question in quiz.questions], module_id=module_id, lesson_id=lesson_id, passing_score=PASSING_SCORE, max_attempts=MAX_QUIZ_ATTEMPTS)


def plan_course(
  structure: CourseStructure,
  *,
  course_id: str,
  create_course: bool,
  creator_id: str,
  document_id: str,
  document_name: str,
  options: GenerationOptions,
  id_factory: Callable[[], str] = generate_row_id,
) -> CoursePlan:
  """Compute every row to write without touching the database."""
  modules: list[ModuleRow] = []
  lessons: list[LessonRow] = []
  quizzes: list[QuizRow] = []
  module_titles: list[str] = []

  for module_index, module in enumerate(structure.modules):
    module_position = module_index + 1
    title = _unique(module_title(module_position, module.title), module_titles)
    module_titles.append(title)
    module_id = id_factory()

    lesson_titles: list[str] = []
    module_minutes = 0
    for lesson_index, lesson in enumerate(module.lessons):
      name = _unique(lesson_title(module_position, lesson_index + 1, lesson.title), lesson_titles)
      lesson_titles.append(name)
      lesson_id = id_factory()
      minutes = lesson.estimated_duration or DEFAULT_LESSON_MINUTES
      module_minutes += minutes
      lessons.append(
        LessonRow(
          lesson_id=lesson_id,
          module_id=module_id,
          title=name,
          content=lesson.content,
          order_index=lesson_index,
          estimated_duration=minutes,
          source_references=extract_source_references(lesson.content, document_id, document_name),
        )
      )
      if lesson.quiz and lesson.quiz.questions:
        quizzes.append(_quiz_row(lesson.quiz, title=f"{name} - Quiz", module_id=module_id, lesson_id=lesson_id, id_factory=id_factory))

    if module.quiz and module.quiz.questions:
      quizzes.append(_quiz_row(module.quiz, title=f"{title} - Module Quiz", module_id=module_id, lesson_id=None, id_factory=id_factory))

    modules.append(ModuleRow(module_id=module_id, course_id=course_id, title=title, description=module.description or "", order_index=module_index, estimated_duration=module.estimated_duration or module_minutes))

  course = CourseRow(
    course_id=course_id,
    title=structure.title,
    description=structure.description,
    creator_id=creator_id,
    document_id=document_id,
    create=create_course,
    language=options.language,
    target_audience=options.target_audience,
    content_focus=options.content_focus,
    difficulty_level=structure.difficulty_level or options.difficulty_level,
    estimated_duration=structure.estimated_duration or sum(module.estimated_duration or 0 for module in modules),
  )
  return CoursePlan(course=course, modules=modules, lessons=lessons, quizzes=quizzes)


async def materialize_course(structure: CourseStructure, *, courses_repo: CoursesRepository, course_id: str, creator_id: str, document_id: str, document_name: str, options: GenerationOptions) -> CoursePlan:
  """Write the structure into course rows in one transaction."""
  create_course = not await courses_repo.course_exists(course_id)
  plan = plan_course(structure, course_id=course_id, create_course=create_course, creator_id=creator_id, document_id=document_id, document_name=document_name, options=options)
  await courses_repo.save_course_plan(plan)
  return plan


def build_result(structure: CourseStructure, plan: CoursePlan) -> dict[str, Any]:
  """Job result: the cleaned structure with the materialized course id and row counts."""
  payload = structure.to_payload()
  payload["courseId"] = plan.course.course_id
  payload["moduleCount"] = len(plan.modules)
  payload["lessonCount"] = len(plan.lessons)
  payload["quizCount"] = len(plan.quizzes)
  return payload

"""Duplicate detection and cleanup for generated course content."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from korsify.schema.course_content import CourseStructure, QuizQuestion

DEFAULT_SIMILARITY_THRESHOLD = 0.85

logger = logging.getLogger(__name__)


class _Titled(Protocol):
  title: str


TitledT = TypeVar("TitledT", bound=_Titled)


def levenshtein_distance(first: str, second: str) -> int:
  """Return the edit distance between two strings."""
  if len(first) < len(second):
    first, second = second, first
  previous = list(range(len(second) + 1))
  for row, first_char in enumerate(first, start=1):
    current = [row]
    for column, second_char in enumerate(second, start=1):
      cost = 0 if first_char == second_char else 1
      current.append(min(previous[column - 1] + cost, current[column - 1] + 1, previous[column] + 1))
    previous = current
  return previous[-1]


def calculate_similarity(first: str, second: str) -> float:
  """Similarity in [0, 1] from the edit distance relative to the longer string."""
  left = first.lower().strip()
  right = second.lower().strip()
  if left == right:
    return 1.0
  longer = left if len(left) > len(right) else right
  shorter = right if longer is left else left
  if not longer:
    return 1.0
  return (len(longer) - levenshtein_distance(shorter, longer)) / len(longer)


def is_title_duplicate(title: str, existing: Iterable[str], threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> bool:
  for candidate in existing:
    similarity = calculate_similarity(title, candidate)
    if similarity >= threshold:
      logger.debug("Duplicate detected: %r is %.1f%% similar to %r", title, similarity * 100, candidate)
      return True
  return False


def deduplicate_by_title(items: Sequence[TitledT], threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> list[TitledT]:
  """Keep the first of every group of near-identical titles, preserving order."""
  unique: list[TitledT] = []
  titles: list[str] = []
  for item in items:
    if is_title_duplicate(item.title, titles, threshold):
      logger.info("Removed duplicate: %r", item.title)
      continue
    unique.append(item)
    titles.append(item.title)
  return unique


def deduplicate_questions(questions: Sequence[QuizQuestion], threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> list[QuizQuestion]:
  unique: list[QuizQuestion] = []
  texts: list[str] = []
  for question in questions:
    if is_title_duplicate(question.question, texts, threshold):
      logger.info("Removed duplicate quiz question: %r", question.question[:50])
      continue
    unique.append(question)
    texts.append(question.question)
  return unique


def generate_unique_title(base_title: str, existing: Iterable[str]) -> str:
  """Append ' (2)', ' (3)', ... until the title differs case-insensitively from every existing one."""
  taken = {title.lower() for title in existing}
  title = base_title
  counter = 1
  while title.lower() in taken:
    counter += 1
    title = f"{base_title} ({counter})"
  return title


def validate_course_structure(structure: CourseStructure) -> tuple[bool, list[str]]:
  """Report structural problems and near-duplicate titles or questions.

  Returns ``(is_valid, issues)``. Structural problems (missing title, no
  modules, empty modules) and duplicates are both reported; callers decide
  which ones are fatal.
  """
  issues = structural_issues(structure)

  module_titles: list[str] = []
  for module in structure.modules:
    if is_title_duplicate(module.title, module_titles):
      issues.append(f'Duplicate module title detected: "{module.title}"')
    module_titles.append(module.title)

    lesson_titles: list[str] = []
    for lesson in module.lessons:
      if is_title_duplicate(lesson.title, lesson_titles):
        issues.append(f'Duplicate lesson title in module "{module.title}": "{lesson.title}"')
      lesson_titles.append(lesson.title)

    quizzes = [module.quiz] if module.quiz else []
    quizzes.extend(lesson.quiz for lesson in module.lessons if lesson.quiz)
    for quiz in quizzes:
      questions: list[str] = []
      for question in quiz.questions:
        if is_title_duplicate(question.question, questions):
          issues.append(f'Duplicate quiz question in module "{module.title}": "{question.question}"')
        questions.append(question.question)

  return not issues, issues


def structural_issues(structure: CourseStructure) -> list[str]:
  """Return only the problems that make a structure unusable."""
  issues: list[str] = []
  if not structure.title.strip():
    issues.append("Course title is missing")
  if not structure.modules:
    issues.append("Course has no modules")
  issues.extend(f'Module "{module.title}" has no lessons' for module in structure.modules if not module.lessons)
  return issues


def clean_course_structure(structure: CourseStructure) -> CourseStructure:
  """Return a deduplicated copy; the input is left untouched."""
  cleaned = structure.model_copy(deep=True)
  cleaned.modules = deduplicate_by_title(cleaned.modules)
  for module in cleaned.modules:
    module.lessons = deduplicate_by_title(module.lessons)
    if module.quiz:
      module.quiz.questions = deduplicate_questions(module.quiz.questions)
    for lesson in module.lessons:
      if lesson.quiz:
        lesson.quiz.questions = deduplicate_questions(lesson.quiz.questions)
  return cleaned

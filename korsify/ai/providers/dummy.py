"""Deterministic course generator for local runs and tests."""

from __future__ import annotations

import re
from collections.abc import Sequence

from korsify.schema.course_content import CourseOutline, GenerationOptions, LessonContent, ModuleContent, OutlineModule, QuizQuestion

_LESSONS_PER_MODULE = 3
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'-]{3,}")


def _topics(content: str, limit: int) -> list[str]:
  """Pick distinct capitalized words from the document as stand-in topics."""
  seen: list[str] = []
  for word in _WORD_RE.findall(content):
    candidate = word.capitalize()
    if candidate not in seen:
      seen.append(candidate)
    if len(seen) >= limit:
      break
  while len(seen) < limit:
    seen.append(f"Topic {len(seen) + 1}")
  return seen


class DummyCourseGenerator:
  """Builds a course from the document text without calling a model."""

  name = "dummy"

  async def analyze_document(self, content: str, file_name: str) -> str:
    return f"{file_name}: {len(content.split())} words."

  async def generate_course_outline(self, content: str, file_name: str, options: GenerationOptions) -> CourseOutline:
    topics = _topics(content, options.module_count * _LESSONS_PER_MODULE)
    modules = []
    for index in range(options.module_count):
      lesson_topics = topics[index * _LESSONS_PER_MODULE : (index + 1) * _LESSONS_PER_MODULE]
      modules.append(OutlineModule(title=f"{lesson_topics[0]} Fundamentals", description=f"Covers {', '.join(lesson_topics)}.", lesson_titles=[f"Understanding {topic}" for topic in lesson_topics]))
    stem = file_name.rsplit(".", 1)[0] or "Document"
    return CourseOutline(title=f"Course on {stem}", description=f"Generated from {file_name}.", estimated_duration=options.module_count * _LESSONS_PER_MODULE * 10, difficulty_level=options.difficulty_level, modules=modules)

  async def generate_module_batch(self, content: str, outline: CourseOutline, module_indexes: Sequence[int], options: GenerationOptions) -> list[ModuleContent]:
    excerpt = " ".join(content.split()[:40])
    modules = []
    for index in module_indexes:
      planned = outline.modules[index]
      lessons = [LessonContent(title=title, content=f"<h2>{title}</h2><p>{excerpt} [{position + 1}].</p>", estimated_duration=10) for position, title in enumerate(planned.lesson_titles)]
      modules.append(ModuleContent(title=planned.title, description=planned.description, estimated_duration=10 * len(lessons), lessons=lessons))
    return modules

  async def generate_quiz_questions(self, content: str, count: int, difficulty: str) -> list[QuizQuestion]:
    topics = _topics(content, count)
    return [
      QuizQuestion(question=f"What is {topic}?", type="multiple_choice", options=[f"{topic} is covered", "It is not mentioned", "It is contradicted", "None of the above"], correct_answer=f"{topic} is covered", explanation=f"The material discusses {topic}.")
      for topic in topics
    ]

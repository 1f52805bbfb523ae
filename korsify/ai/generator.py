"""Course generator contract shared by AI providers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from korsify.schema.course_content import CourseOutline, GenerationOptions, ModuleContent, QuizQuestion


class CourseGenerator(Protocol):
  """Turns document text into course content.

  Implementations raise ``TransientJobError`` for failures worth retrying
  (rate limits, timeouts) and ``PermanentJobError`` when the model output
  cannot be used.
  """

  name: str

  async def analyze_document(self, content: str, file_name: str) -> str:
    """Return a free-text analysis of topics, objectives and complexity."""

  async def generate_course_outline(self, content: str, file_name: str, options: GenerationOptions) -> CourseOutline:
    """Return the course title, description and per-module lesson plan."""

  async def generate_module_batch(self, content: str, outline: CourseOutline, module_indexes: Sequence[int], options: GenerationOptions) -> list[ModuleContent]:
    """Write the full modules at ``module_indexes`` of the outline."""

  async def generate_quiz_questions(self, content: str, count: int, difficulty: str) -> list[QuizQuestion]:
    """Return up to ``count`` questions; an empty list means the model produced nothing usable."""

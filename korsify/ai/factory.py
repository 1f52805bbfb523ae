"""Course generator selection."""

from __future__ import annotations

from korsify.ai.generator import CourseGenerator
from korsify.ai.providers.dummy import DummyCourseGenerator
from korsify.ai.providers.gemini import GeminiCourseGenerator
from korsify.config import Settings


def get_course_generator(settings: Settings) -> CourseGenerator:
  """Return the course generator configured for this process."""
  if settings.generator_provider == "dummy":
    return DummyCourseGenerator()
  if settings.generator_provider == "gemini":
    return GeminiCourseGenerator(api_key=settings.gemini_api_key, model=settings.gemini_model)
  raise ValueError(f"Unsupported generator provider '{settings.generator_provider}'.")

"""Course generator implementations."""

from korsify.ai.providers.dummy import DummyCourseGenerator
from korsify.ai.providers.gemini import GeminiCourseGenerator

__all__ = ["DummyCourseGenerator", "GeminiCourseGenerator"]

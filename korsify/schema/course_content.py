"""Pydantic models for generated course content and generation options.

These shapes travel between the course generator, the validation pass and
materialization, and are stored as the job result. Serialized keys are
camelCase (``estimatedDuration``, ``correctAnswer``) so stored results match
what course editors already consume.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DifficultyLevel = Literal["beginner", "intermediate", "advanced", "expert"]
QuizFrequency = Literal["module", "lesson"]
QuestionType = Literal["multiple_choice", "true_false", "short_answer"]


class _ContentModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

  def to_payload(self) -> dict:
    return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenerationOptions(_ContentModel):
  """Creator-selected knobs for one generation run."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

  language: str = Field(default="English", min_length=1, max_length=40)
  target_audience: str = Field(default="General learners", min_length=1, max_length=200)
  content_focus: str = Field(default="Comprehensive understanding", min_length=1, max_length=200)
  difficulty_level: DifficultyLevel = "intermediate"
  module_count: int = Field(default=3, ge=1, le=12)
  generate_quizzes: bool = True
  quiz_frequency: QuizFrequency = "module"
  questions_per_quiz: int = Field(default=5, ge=1, le=20)
  include_exercises: bool = True
  include_examples: bool = True


class QuizQuestion(_ContentModel):
  question: str = Field(min_length=1)
  type: QuestionType = "multiple_choice"
  options: list[str] = Field(default_factory=list)
  correct_answer: str
  explanation: str | None = None

  @field_validator("correct_answer", mode="before")
  @classmethod
  def _stringify_answer(cls, value: object) -> object:
    # Models sometimes answer true/false questions with JSON booleans.
    if isinstance(value, bool):
      return "True" if value else "False"
    if isinstance(value, int | float):
      return str(value)
    return value


class QuizContent(_ContentModel):
  title: str
  questions: list[QuizQuestion] = Field(default_factory=list)


class LessonContent(_ContentModel):
  title: str = Field(min_length=1)
  content: str = ""
  estimated_duration: int = Field(default=10, ge=0)
  quiz: QuizContent | None = None


class ModuleContent(_ContentModel):
  title: str = Field(min_length=1)
  description: str = ""
  estimated_duration: int | None = None
  lessons: list[LessonContent] = Field(default_factory=list)
  quiz: QuizContent | None = None


class OutlineModule(_ContentModel):
  title: str = Field(min_length=1)
  description: str = ""
  lesson_titles: list[str] = Field(default_factory=list)


class CourseOutline(_ContentModel):
  """Lightweight plan produced before any lesson text is written."""

  title: str = Field(min_length=1)
  description: str = ""
  estimated_duration: int | None = None
  difficulty_level: DifficultyLevel | None = None
  modules: list[OutlineModule] = Field(default_factory=list)


class CourseStructure(_ContentModel):
  """Full generated course: outline header plus written modules."""

  title: str
  description: str = ""
  estimated_duration: int | None = None
  difficulty_level: DifficultyLevel | None = None
  modules: list[ModuleContent] = Field(default_factory=list)

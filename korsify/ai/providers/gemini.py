"""Gemini course generator using the google-genai SDK."""

from __future__ import annotations

import json
import logging
import warnings
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError
from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors as genai_errors

from korsify.ai import prompts
from korsify.ai.backoff import retry_with_backoff
from korsify.ai.json_parser import parse_json_with_fallback
from korsify.jobs.errors import PermanentJobError, TransientJobError
from korsify.schema.course_content import CourseOutline, GenerationOptions, ModuleContent, QuizQuestion

logger = logging.getLogger(__name__)

_JSON_CONFIG: dict[str, Any] = {"response_mime_type": "application/json"}


class GeminiCourseGenerator:
  """Course generator backed by a Gemini model."""

  name = "gemini"

  def __init__(self, *, api_key: str | None, model: str, client: Any | None = None) -> None:
    if client is None and not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")
    self.model = model
    self._client = client or genai.Client(api_key=api_key)

  async def _generate(self, prompt: str, *, json_mode: bool) -> str:
    kwargs: dict[str, Any] = {"model": self.model, "contents": prompt}
    if json_mode:
      kwargs["config"] = _JSON_CONFIG
    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await retry_with_backoff(self._client.aio.models.generate_content, **kwargs)
    except httpx.TimeoutException as e:
      raise TransientJobError(f"AI provider timeout: {str(e) or type(e).__name__}") from e
    except httpx.TransportError as e:
      raise TransientJobError(f"AI provider connection failed: {str(e) or type(e).__name__}") from e
    except genai_errors.ServerError as e:
      # 5xx such as 503 "model overloaded" usually clears on a later attempt.
      raise TransientJobError(f"AI provider unavailable: {e}") from e
    text = response.text
    if not text:
      raise TransientJobError("Empty response from model")
    if response.usage_metadata:
      logger.debug("Gemini usage: prompt=%s completion=%s total=%s", response.usage_metadata.prompt_token_count, response.usage_metadata.candidates_token_count, response.usage_metadata.total_token_count)
    return text

  async def _generate_json(self, prompt: str, *, purpose: str) -> Any:
    raw = await self._generate(prompt, json_mode=True)
    try:
      return parse_json_with_fallback(raw)
    except json.JSONDecodeError as e:
      logger.error("Gemini returned invalid JSON for %s:\n%s", purpose, raw)
      raise PermanentJobError(f"Gemini returned invalid JSON for {purpose}: {e}") from e

  async def analyze_document(self, content: str, file_name: str) -> str:
    analysis = await self._generate(prompts.analysis_prompt(content, file_name), json_mode=False)
    logger.info("Document analysis for %s: %d chars", file_name, len(analysis))
    return analysis

  async def generate_course_outline(self, content: str, file_name: str, options: GenerationOptions) -> CourseOutline:
    payload = await self._generate_json(prompts.outline_prompt(content, file_name, options), purpose="course outline")
    try:
      outline = CourseOutline.model_validate(payload)
    except ValidationError as e:
      raise PermanentJobError(f"Failed to generate course outline: {e.error_count()} invalid fields") from e
    if not outline.modules:
      raise PermanentJobError("Failed to generate course outline: no modules planned")
    return outline

  async def generate_module_batch(self, content: str, outline: CourseOutline, module_indexes: Sequence[int], options: GenerationOptions) -> list[ModuleContent]:
    prompt = prompts.module_batch_prompt(content, outline, module_indexes, options)
    payload = await self._generate_json(prompt, purpose="module batch")
    # A single module sometimes comes back unwrapped.
    if isinstance(payload, dict):
      payload = payload.get("modules", [payload])
    if not isinstance(payload, list):
      raise PermanentJobError("Failed to generate modules: expected a JSON list")
    try:
      modules = [ModuleContent.model_validate(item) for item in payload]
    except ValidationError as e:
      raise PermanentJobError(f"Failed to generate modules: {e.error_count()} invalid fields") from e
    if len(modules) != len(module_indexes):
      logger.warning("Gemini returned %d modules for a batch of %d", len(modules), len(module_indexes))
    return modules[: len(module_indexes)]

  async def generate_quiz_questions(self, content: str, count: int, difficulty: str) -> list[QuizQuestion]:
    try:
      payload = await self._generate_json(prompts.quiz_prompt(content, count, difficulty), purpose="quiz questions")
    except PermanentJobError as e:
      logger.error("Failed to generate quiz questions: %s", e)
      return []
    if isinstance(payload, dict):
      payload = payload.get("questions", [])
    questions: list[QuizQuestion] = []
    for item in payload if isinstance(payload, list) else []:
      try:
        questions.append(QuizQuestion.model_validate(item))
      except ValidationError:
        logger.warning("Skipping malformed quiz question: %r", item)
    return questions[:count]

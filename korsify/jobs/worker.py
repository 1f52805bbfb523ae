"""Background processor for document-to-course generation jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from korsify.ai.generator import CourseGenerator
from korsify.config import Settings
from korsify.jobs import state
from korsify.jobs.errors import JobLeaseLostError, PermanentJobError, classify_exception
from korsify.jobs.models import JobRecord
from korsify.jobs.progress import MODULE_BATCHES_END, OUTLINE_PROGRESS, JobProgressTracker, batch_progress
from korsify.schema.course_content import CourseStructure, GenerationOptions, ModuleContent, QuizContent
from korsify.services.deduplication import clean_course_structure, deduplicate_questions, structural_issues, validate_course_structure
from korsify.services.documents import load_document_content
from korsify.services.materialization import build_result, materialize_course
from korsify.storage.courses_repo import CoursesRepository
from korsify.storage.documents_repo import DocumentsRepository
from korsify.storage.jobs_repo import JobsRepository
from korsify.utils.ids import generate_course_id, generate_worker_id

LEASE_EXPIRED_MESSAGE = "Worker lease expired"

logger = logging.getLogger(__name__)


class JobProcessor:
  """Runs one job through every phase, from document text to course rows."""

  def __init__(
    self,
    *,
    jobs_repo: JobsRepository,
    documents_repo: DocumentsRepository,
    courses_repo: CoursesRepository,
    generator: CourseGenerator,
    settings: Settings,
    worker_id: str | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
  ) -> None:
    self._jobs_repo = jobs_repo
    self._documents_repo = documents_repo
    self._courses_repo = courses_repo
    self._generator = generator
    self._settings = settings
    self._worker_id = worker_id or generate_worker_id()
    self._sleep = sleep

  async def process_job(self, job: JobRecord) -> JobRecord | None:
    """Claim and execute a pending job.

    Returns the final record, the untouched job when it was not pending, or
    ``None`` when another writer took the job away mid-run.
    """
    if job.status != "pending":
      logger.info("Skipping job %s in status %s", job.job_id, job.status)
      return job

    tracker = await self._claim(job)
    if tracker is None:
      return None

    try:
      result = await self._run(tracker)
      record = await tracker.complete(result=result, message=f"Course {result['courseId']} generated.")
      logger.info("Job %s completed: course %s", job.job_id, result["courseId"])
      return record
    except JobLeaseLostError as exc:
      logger.warning("Job %s abandoned: %s", job.job_id, exc)
      return None
    except Exception as exc:  # noqa: BLE001
      message, kind = classify_exception(exc)
      logger.error("Job %s failed during %s", job.job_id, tracker.job.phase, exc_info=True)
      return await tracker.fail(error=message, kind=kind)

  async def _claim(self, job: JobRecord) -> JobProgressTracker | None:
    try:
      changes = state.start(job, worker_id=self._worker_id, lease_seconds=self._settings.job_lease_seconds)
    except state.InvalidTransitionError as exc:
      logger.info("Job %s not claimable: %s", job.job_id, exc)
      return None
    record = await self._jobs_repo.update_job(job.job_id, changes=changes, expected_version=job.version, logs=[f"Claimed by worker {self._worker_id}."])
    if record is None:
      logger.info("Job %s was claimed by another worker", job.job_id)
      return None
    return JobProgressTracker(job=record, jobs_repo=self._jobs_repo, worker_id=self._worker_id, lease_seconds=self._settings.job_lease_seconds)

  async def _run(self, tracker: JobProgressTracker) -> dict:
    job = tracker.job
    options = GenerationOptions.model_validate(job.options or {})

    await tracker.enter_phase("document_analysis", message="Loading document.")
    document, content = await load_document_content(job.document_id, documents_repo=self._documents_repo, max_chars=self._settings.document_max_chars)
    await tracker.finish_phase("document_analysis", message=f"Loaded {document.file_name} ({len(content)} characters).")

    await tracker.enter_phase("content_analysis", message="Analyzing document content.")
    analysis = await self._generator.analyze_document(content, document.file_name)
    await tracker.finish_phase("content_analysis", message=f"Document analysis complete ({len(analysis)} characters).")

    await tracker.enter_phase("content_generation", message="Generating course outline.")
    outline = await self._generator.generate_course_outline(content, document.file_name, options)
    module_count = len(outline.modules)
    await tracker.update(phase="content_generation", progress=OUTLINE_PROGRESS, message=f"Outline ready: {module_count} modules.")

    # One module per batch keeps lesson quality consistent across the course.
    modules: list[ModuleContent] = []
    for batch_index in range(module_count):
      modules.extend(await self._generator.generate_module_batch(content, outline, [batch_index], options))
      await tracker.update(phase="content_generation", progress=batch_progress(batch_index, module_count), message=f"Generated module {batch_index + 1}/{module_count}.")

    structure = CourseStructure(title=outline.title, description=outline.description, estimated_duration=outline.estimated_duration, difficulty_level=outline.difficulty_level, modules=modules)
    if options.generate_quizzes:
      await self._attach_quizzes(structure, options, tracker)
    await tracker.finish_phase("content_generation", message="Content generation complete.")

    await tracker.enter_phase("validation", message="Validating course structure.")
    problems = structural_issues(structure)
    if problems:
      raise PermanentJobError(f"Generated course structure is invalid: {'; '.join(problems)}")
    is_valid, issues = validate_course_structure(structure)
    if not is_valid:
      logger.warning("Duplicate content detected in job %s: %s", job.job_id, issues)
      tracker.add_logs(f"Duplicate content detected: {len(issues)} issue(s); cleaning.")
    structure = clean_course_structure(structure)
    await tracker.finish_phase("validation", message="Validation complete.")

    await tracker.enter_phase("finalization", message="Saving course.")
    plan = await materialize_course(
      structure,
      courses_repo=self._courses_repo,
      course_id=job.course_id or generate_course_id(),
      creator_id=job.user_id or document.uploaded_by,
      document_id=document.document_id,
      document_name=document.file_name,
      options=options,
    )
    return build_result(structure, plan)

  async def _attach_quizzes(self, structure: CourseStructure, options: GenerationOptions, tracker: JobProgressTracker) -> None:
    for module in structure.modules:
      if options.quiz_frequency == "lesson":
        for lesson in module.lessons:
          lesson.quiz = await self._generate_quiz(lesson.content, lesson.title, options)
          await tracker.update(phase="content_generation", progress=MODULE_BATCHES_END, message=f"Quiz ready for lesson: {lesson.title}")
      else:
        module_text = "\n\n".join(lesson.content for lesson in module.lessons)
        module.quiz = await self._generate_quiz(module_text, module.title, options)
        await tracker.update(phase="content_generation", progress=MODULE_BATCHES_END, message=f"Quiz ready for module: {module.title}")

  async def _generate_quiz(self, content: str, title: str, options: GenerationOptions) -> QuizContent:
    """Ask for questions up to the configured attempts, then drop near-duplicates."""
    max_attempts = self._settings.quiz_max_attempts
    for attempt in range(1, max_attempts + 1):
      questions = await self._generator.generate_quiz_questions(content, options.questions_per_quiz, options.difficulty_level)
      if questions:
        break
      logger.warning("Failed to generate quiz for %s (attempt %d/%d)", title, attempt, max_attempts)
      if attempt < max_attempts:
        await self._sleep(self._settings.quiz_retry_delay_seconds)
    else:
      raise PermanentJobError(f"Failed to generate quiz for {title} after {max_attempts} attempts")

    unique = deduplicate_questions(questions)
    if not unique:
      raise PermanentJobError(f"Failed to generate quiz for {title} - No unique questions after deduplication")
    return QuizContent(title=title, questions=unique)


async def fail_expired_leases(jobs_repo: JobsRepository, *, now: datetime | None = None, limit: int = 50) -> list[JobRecord]:
  """Fail processing jobs whose worker stopped renewing its lease."""
  moment = now or state.utc_now()
  failed: list[JobRecord] = []
  for job in await jobs_repo.find_expired_leases(now=state.format_timestamp(moment), limit=limit):
    if not state.lease_expired(job, now=moment):
      continue
    changes = state.fail(job, error=LEASE_EXPIRED_MESSAGE, kind="transient", now=moment)
    record = await jobs_repo.update_job(job.job_id, changes=changes, expected_version=job.version, logs=[f"{LEASE_EXPIRED_MESSAGE} (held by {job.claimed_by})."])
    if record is None:
      logger.info("Job %s changed while sweeping leases; skipped", job.job_id)
      continue
    logger.warning("Failed job %s after its lease expired (worker %s)", job.job_id, job.claimed_by)
    failed.append(record)
  return failed

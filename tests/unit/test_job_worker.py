from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from korsify.ai.providers.dummy import DummyCourseGenerator
from korsify.jobs import state
from korsify.jobs.errors import TransientJobError
from korsify.jobs.worker import LEASE_EXPIRED_MESSAGE, JobProcessor, fail_expired_leases
from korsify.schema.course_content import QuizQuestion


class RecordingSleep:
  def __init__(self) -> None:
    self.calls: list[float] = []

  async def __call__(self, delay: float) -> None:
    self.calls.append(delay)


class NoQuizGenerator(DummyCourseGenerator):
  def __init__(self) -> None:
    self.quiz_calls = 0

  async def generate_quiz_questions(self, content: str, count: int, difficulty: str) -> list[QuizQuestion]:
    self.quiz_calls += 1
    return []


class RateLimitedGenerator(DummyCourseGenerator):
  async def analyze_document(self, content: str, file_name: str) -> str:
    raise TransientJobError("AI provider rate limit: 429 Too Many Requests")


class SweptMidRunGenerator(DummyCourseGenerator):
  """Simulates the lease sweep failing the job while the model call is in flight."""

  def __init__(self, jobs_repo) -> None:
    self._jobs_repo = jobs_repo

  async def analyze_document(self, content: str, file_name: str) -> str:
    current = await self._jobs_repo.get_job("job-1")
    await self._jobs_repo.update_job("job-1", changes=state.fail(current, error=LEASE_EXPIRED_MESSAGE, kind="transient"), expected_version=current.version)
    return "analysis"


def _processor(jobs_repo, documents_repo, courses_repo, settings, generator=None, sleep=None) -> JobProcessor:
  return JobProcessor(
    jobs_repo=jobs_repo,
    documents_repo=documents_repo,
    courses_repo=courses_repo,
    generator=generator or DummyCourseGenerator(),
    settings=settings,
    worker_id="worker-test",
    sleep=sleep or RecordingSleep(),
  )


@pytest.mark.anyio
async def test_process_job_generates_and_materializes_course(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory()
  await jobs_repo.create_job(job)

  record = await _processor(jobs_repo, documents_repo, courses_repo, settings).process_job(job)

  assert record is not None
  assert record.status == "completed"
  assert record.progress == 100
  assert record.phase == "finalization"
  assert record.claimed_by is None
  assert record.result["courseId"] == "course-1"
  assert record.result["moduleCount"] == 2
  assert record.result["lessonCount"] == 6
  assert record.result["quizCount"] == 2
  assert record.logs[-1] == "Course course-1 generated."

  plan = courses_repo.plans[0]
  assert plan.course.create is True
  assert plan.course.creator_id == "user-1"
  assert [module.title for module in plan.modules][0].startswith("Module 1: ")
  assert plan.lessons[0].title.startswith("Lesson 1.1: ")
  assert all(quiz.lesson_id is None for quiz in plan.quizzes)


@pytest.mark.anyio
async def test_progress_and_phase_never_move_backwards(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory()
  await jobs_repo.create_job(job)
  await _processor(jobs_repo, documents_repo, courses_repo, settings).process_job(job)

  progresses = [record.progress for record in jobs_repo.history]
  phases = [state.PHASES.index(record.phase) for record in jobs_repo.history]
  assert progresses == sorted(progresses)
  assert phases == sorted(phases)
  assert {record.phase for record in jobs_repo.history} == set(state.PHASES)


@pytest.mark.anyio
async def test_lesson_quiz_frequency_attaches_quiz_per_lesson(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory(options={"moduleCount": 1, "quizFrequency": "lesson", "questionsPerQuiz": 2})
  await jobs_repo.create_job(job)

  record = await _processor(jobs_repo, documents_repo, courses_repo, settings).process_job(job)

  assert record.status == "completed"
  quizzes = courses_repo.plans[0].quizzes
  assert len(quizzes) == 3
  assert all(quiz.lesson_id is not None for quiz in quizzes)
  assert all(quiz.title.endswith(" - Quiz") for quiz in quizzes)


@pytest.mark.anyio
async def test_quiz_generation_failure_fails_job_after_max_attempts(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory()
  await jobs_repo.create_job(job)
  generator = NoQuizGenerator()
  sleep = RecordingSleep()

  record = await _processor(jobs_repo, documents_repo, courses_repo, settings, generator=generator, sleep=sleep).process_job(job)

  assert record.status == "failed"
  assert record.error_kind == "permanent"
  assert "after 3 attempts" in record.error
  assert record.result is None
  assert generator.quiz_calls == 3
  assert sleep.calls == [0, 0]
  assert courses_repo.plans == []


@pytest.mark.anyio
async def test_quizzes_can_be_disabled(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory(options={"moduleCount": 1, "generateQuizzes": False})
  await jobs_repo.create_job(job)
  generator = NoQuizGenerator()

  record = await _processor(jobs_repo, documents_repo, courses_repo, settings, generator=generator).process_job(job)

  assert record.status == "completed"
  assert generator.quiz_calls == 0
  assert record.result["quizCount"] == 0


@pytest.mark.anyio
async def test_missing_document_fails_job(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory(document_id="doc-missing")
  await jobs_repo.create_job(job)

  record = await _processor(jobs_repo, documents_repo, courses_repo, settings).process_job(job)

  assert record.status == "failed"
  assert record.error == "Document not found"
  assert record.error_kind == "permanent"
  assert record.phase == "document_analysis"


@pytest.mark.anyio
async def test_rate_limit_failure_is_transient(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory()
  await jobs_repo.create_job(job)

  record = await _processor(jobs_repo, documents_repo, courses_repo, settings, generator=RateLimitedGenerator()).process_job(job)

  assert record.status == "failed"
  assert record.error_kind == "transient"
  assert record.phase == "content_analysis"


@pytest.mark.anyio
async def test_worker_stops_when_lease_is_taken_away(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory()
  await jobs_repo.create_job(job)

  result = await _processor(jobs_repo, documents_repo, courses_repo, settings, generator=SweptMidRunGenerator(jobs_repo)).process_job(job)

  assert result is None
  stored = await jobs_repo.get_job("job-1")
  assert stored.status == "failed"
  assert stored.error == LEASE_EXPIRED_MESSAGE
  assert courses_repo.plans == []


@pytest.mark.anyio
async def test_only_one_worker_claims_a_job(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory()
  await jobs_repo.create_job(job)
  first = _processor(jobs_repo, documents_repo, courses_repo, settings)

  assert (await first.process_job(job)).status == "completed"
  # A duplicate delivery still holding the stale pending snapshot loses the version check.
  second = JobProcessor(jobs_repo=jobs_repo, documents_repo=documents_repo, courses_repo=courses_repo, generator=DummyCourseGenerator(), settings=settings, worker_id="worker-other")
  assert await second.process_job(job) is None
  assert len(courses_repo.plans) == 1


@pytest.mark.anyio
async def test_non_pending_job_is_skipped(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  job = job_factory(status="failed", error="earlier failure")
  await jobs_repo.create_job(job)

  assert await _processor(jobs_repo, documents_repo, courses_repo, settings).process_job(job) is job
  assert jobs_repo.history == []


@pytest.mark.anyio
async def test_existing_course_is_updated_not_created(jobs_repo, documents_repo, courses_repo, settings, job_factory) -> None:
  courses_repo.existing.add("course-1")
  job = job_factory(user_id=None)
  await jobs_repo.create_job(job)

  await _processor(jobs_repo, documents_repo, courses_repo, settings).process_job(job)

  plan = courses_repo.plans[0]
  assert plan.course.create is False
  assert plan.course.creator_id == "uploader-1"


@pytest.mark.anyio
async def test_fail_expired_leases_fails_abandoned_jobs(jobs_repo, job_factory) -> None:
  claimed_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
  stale = job_factory(job_id="job-stale")
  await jobs_repo.create_job(stale)
  await jobs_repo.update_job("job-stale", changes=state.start(stale, worker_id="gone", lease_seconds=60, now=claimed_at))
  fresh = job_factory(job_id="job-fresh")
  await jobs_repo.create_job(fresh)
  await jobs_repo.update_job("job-fresh", changes=state.start(fresh, worker_id="alive", lease_seconds=3600, now=claimed_at))

  failed = await fail_expired_leases(jobs_repo, now=datetime(2026, 3, 1, 12, 5, tzinfo=UTC))

  assert [record.job_id for record in failed] == ["job-stale"]
  assert failed[0].status == "failed"
  assert failed[0].error == LEASE_EXPIRED_MESSAGE
  assert failed[0].error_kind == "transient"
  assert (await jobs_repo.get_job("job-fresh")).status == "processing"


@pytest.mark.anyio
async def test_sweep_skips_job_renewed_after_it_was_read(jobs_repo, job_factory) -> None:
  claimed_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
  job = job_factory()
  await jobs_repo.create_job(job)
  claimed = await jobs_repo.update_job("job-1", changes=state.start(job, worker_id="slow", lease_seconds=60, now=claimed_at))
  find_expired = jobs_repo.find_expired_leases

  async def find_then_renew(*, now: str, limit: int = 50):
    expired = await find_expired(now=now, limit=limit)
    # The worker renews its lease between the sweep's read and its write.
    await jobs_repo.update_job("job-1", changes=state.renew_lease(claimed, worker_id="slow", lease_seconds=600), expected_version=claimed.version)
    return expired

  jobs_repo.find_expired_leases = find_then_renew

  assert await fail_expired_leases(jobs_repo, now=claimed_at + timedelta(minutes=5)) == []
  assert (await jobs_repo.get_job("job-1")).status == "processing"

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from korsify.jobs import state
from korsify.jobs.models import PHASES

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def _processing(job_factory, **overrides):
  job = job_factory()
  job = state.apply(job, state.start(job, worker_id="worker-a", lease_seconds=60, now=NOW))
  return state.apply(job, overrides) if overrides else job


def test_start_claims_pending_job(job_factory) -> None:
  changes = state.start(job_factory(), worker_id="worker-a", lease_seconds=60, now=NOW)
  assert changes["status"] == "processing"
  assert changes["phase"] == "document_analysis"
  assert changes["claimed_by"] == "worker-a"
  assert changes["started_at"] == "2026-03-01T12:00:00Z"
  assert changes["lease_expires_at"] == "2026-03-01T12:01:00Z"


def test_start_rejects_non_pending_and_claimed_jobs(job_factory) -> None:
  with pytest.raises(state.InvalidTransitionError):
    state.start(job_factory(status="completed", result={"ok": True}), worker_id="w", lease_seconds=60)
  with pytest.raises(state.InvalidTransitionError):
    state.start(job_factory(claimed_by="other"), worker_id="w", lease_seconds=60)


def test_advance_moves_forward_and_never_lowers_progress(job_factory) -> None:
  job = _processing(job_factory, phase="content_generation", progress=60)
  assert state.advance(job, phase="content_generation", progress=40) == {"phase": "content_generation", "progress": 60}
  assert state.advance(job, phase="validation", progress=150)["progress"] == 100


def test_advance_rejects_phase_regression(job_factory) -> None:
  job = _processing(job_factory, phase="validation", progress=90)
  with pytest.raises(state.InvalidTransitionError):
    state.advance(job, phase="content_analysis", progress=95)


def test_advance_requires_processing(job_factory) -> None:
  with pytest.raises(state.InvalidTransitionError):
    state.advance(job_factory(), phase="document_analysis", progress=10)


def test_complete_only_from_finalization(job_factory) -> None:
  job = _processing(job_factory, phase="validation", progress=95)
  with pytest.raises(state.InvalidTransitionError):
    state.complete(job, result={"courseId": "c"})

  job = state.apply(job, state.advance(job, phase="finalization", progress=96))
  done = state.apply(job, state.complete(job, result={"courseId": "c"}, now=NOW))
  assert done.status == "completed"
  assert done.progress == 100
  assert done.claimed_by is None
  assert state.check_invariants(done) == []


def test_fail_from_pending_and_processing(job_factory) -> None:
  failed = state.apply(job_factory(), state.fail(job_factory(), error="Document not found"))
  assert failed.status == "failed"
  assert failed.error_kind == "permanent"
  assert state.check_invariants(failed) == []

  job = _processing(job_factory)
  failed = state.apply(job, state.fail(job, error="rate limited", kind="transient"))
  assert failed.error_kind == "transient"
  assert failed.lease_expires_at is None


def test_fail_requires_message_and_active_status(job_factory) -> None:
  with pytest.raises(ValueError):
    state.fail(job_factory(), error="   ")
  with pytest.raises(state.InvalidTransitionError):
    state.fail(job_factory(status="failed", error="boom"), error="again")


def test_terminal_jobs_cannot_restart(job_factory) -> None:
  done = job_factory(status="completed", phase="finalization", progress=100, result={"courseId": "c"})
  for transition in (
    lambda: state.start(done, worker_id="w", lease_seconds=10),
    lambda: state.advance(done, phase="finalization", progress=100),
    lambda: state.fail(done, error="late failure"),
  ):
    with pytest.raises(state.InvalidTransitionError):
      transition()


def test_renew_lease_requires_holder(job_factory) -> None:
  job = _processing(job_factory)
  renewed = state.renew_lease(job, worker_id="worker-a", lease_seconds=120, now=NOW + timedelta(seconds=30))
  assert renewed["lease_expires_at"] == "2026-03-01T12:02:30Z"
  with pytest.raises(state.InvalidTransitionError):
    state.renew_lease(job, worker_id="worker-b", lease_seconds=120)


def test_lease_expired(job_factory) -> None:
  job = _processing(job_factory)
  assert not state.lease_expired(job, now=NOW + timedelta(seconds=59))
  assert state.lease_expired(job, now=NOW + timedelta(seconds=60))
  assert not state.lease_expired(job_factory(), now=NOW + timedelta(days=1))


def test_check_invariants_reports_violations(job_factory) -> None:
  broken = job_factory(status="completed", result=None, error="oops", progress=101)
  violations = state.check_invariants(broken)
  assert "completed job has no result" in violations
  assert "completed job has an error" in violations
  assert "progress 101 outside 0..100" in violations


def test_phases_follow_processing_order() -> None:
  assert PHASES == ("document_analysis", "content_analysis", "content_generation", "validation", "finalization")


def test_generation_failure_mid_phase(job_factory) -> None:
  job = _processing(job_factory, phase="content_generation", progress=45)
  failed = state.apply(job, state.fail(job, error="AI provider timeout", kind="transient"))
  assert (failed.status, failed.phase, failed.progress) == ("failed", "content_generation", 45)
  assert failed.error == "AI provider timeout"
  assert failed.result is None

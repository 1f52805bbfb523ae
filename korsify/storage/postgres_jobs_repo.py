"""Postgres-backed repository for AI processing jobs using SQLAlchemy."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from korsify.core.database import get_session_factory
from korsify.jobs.models import JobRecord
from korsify.jobs.state import format_timestamp, utc_now
from korsify.schema.jobs import AiProcessingJob, AiProcessingJobEvent
from korsify.storage.jobs_repo import MAX_EVENT_LOGS, JobsRepository

# JobRecord attribute -> column attribute where the names differ.
_COLUMN_NAMES = {"options": "options_json"}
_IMMUTABLE_FIELDS = {"job_id", "document_id", "created_at", "version", "logs"}


def _changes_to_columns(changes: dict[str, Any]) -> dict[str, Any]:
  blocked = _IMMUTABLE_FIELDS.intersection(changes)
  if blocked:
    raise ValueError(f"Job fields cannot be updated: {', '.join(sorted(blocked))}")
  return {_COLUMN_NAMES.get(key, key): value for key, value in changes.items()}


class PostgresJobsRepository(JobsRepository):
  """Persist jobs and their timeline events to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      session.add(
        AiProcessingJob(
          id=record.job_id,
          document_id=record.document_id,
          course_id=record.course_id,
          user_id=record.user_id,
          options_json=record.options,
          status=record.status,
          phase=record.phase,
          progress=record.progress,
          result=record.result,
          error=record.error,
          error_kind=record.error_kind,
          version=record.version,
          claimed_by=record.claimed_by,
          lease_expires_at=record.lease_expires_at,
          retry_of_job_id=record.retry_of_job_id,
          created_at=record.created_at,
          updated_at=record.updated_at,
        )
      )
      await session.flush()
      self._add_events(session=session, job_id=record.job_id, event_type="log", messages=record.logs)
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(AiProcessingJob, job_id)
      if row is None:
        return None
      logs = await self._list_event_messages(session=session, job_id=row.id, limit=MAX_EVENT_LOGS)
      return self._model_to_record(row, logs=logs)

  async def list_jobs_for_document(self, document_id: str, *, limit: int = 20) -> list[JobRecord]:
    async with self._session_factory() as session:
      stmt = select(AiProcessingJob).where(AiProcessingJob.document_id == document_id).order_by(AiProcessingJob.created_at.desc(), AiProcessingJob.id.desc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      logs_by_job = await self._list_event_messages_for_jobs(session=session, job_ids=[row.id for row in rows], limit=MAX_EVENT_LOGS)
      return [self._model_to_record(row, logs=logs_by_job.get(row.id, [])) for row in rows]

  async def update_job(self, job_id: str, *, changes: dict[str, Any], expected_version: int | None = None, logs: list[str] | None = None) -> JobRecord | None:
    columns = _changes_to_columns(changes)
    async with self._session_factory() as session:
      stmt = update(AiProcessingJob).where(AiProcessingJob.id == job_id)
      # Compare-and-set on the version column keeps concurrent writers from interleaving.
      if expected_version is not None:
        stmt = stmt.where(AiProcessingJob.version == expected_version)
      stmt = stmt.values(**columns, version=AiProcessingJob.version + 1, updated_at=format_timestamp(utc_now())).returning(AiProcessingJob).execution_options(synchronize_session=False)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        await session.rollback()
        return None
      self._add_events(session=session, job_id=job_id, event_type="log", messages=logs or [])
      await session.commit()
      snapshot = await self._list_event_messages(session=session, job_id=job_id, limit=MAX_EVENT_LOGS)
      return self._model_to_record(row, logs=snapshot)

  async def find_expired_leases(self, *, now: str, limit: int = 50) -> list[JobRecord]:
    async with self._session_factory() as session:
      stmt = (
        select(AiProcessingJob)
        .where(AiProcessingJob.status == "processing", AiProcessingJob.lease_expires_at.is_not(None), AiProcessingJob.lease_expires_at <= now)
        .order_by(AiProcessingJob.lease_expires_at.asc())
        .limit(limit)
      )
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row, logs=[]) for row in rows]

  async def append_event(self, *, job_id: str, event_type: str, message: str, payload_json: dict | None = None) -> None:
    async with self._session_factory() as session:
      session.add(AiProcessingJobEvent(job_id=job_id, event_type=event_type, message=message, payload_json=payload_json))
      await session.commit()

  async def list_events(self, *, job_id: str, limit: int = MAX_EVENT_LOGS) -> list[str]:
    async with self._session_factory() as session:
      return await self._list_event_messages(session=session, job_id=job_id, limit=limit)

  def _add_events(self, *, session: AsyncSession, job_id: str, event_type: str, messages: list[str]) -> None:
    for message in messages:
      if str(message).strip() == "":
        continue
      session.add(AiProcessingJobEvent(job_id=job_id, event_type=event_type, message=str(message), payload_json=None))

  async def _list_event_messages(self, *, session: AsyncSession, job_id: str, limit: int) -> list[str]:
    stmt = select(AiProcessingJobEvent.message).where(AiProcessingJobEvent.job_id == job_id).order_by(AiProcessingJobEvent.created_at.desc(), AiProcessingJobEvent.id.desc()).limit(limit)
    rows = (await session.execute(stmt)).scalars().all()
    return list(reversed([str(item) for item in rows]))

  async def _list_event_messages_for_jobs(self, *, session: AsyncSession, job_ids: list[str], limit: int) -> dict[str, list[str]]:
    if not job_ids:
      return {}
    # Rank each job's events newest first in one query, then keep the last `limit` per job in chronological order.
    rank = func.row_number().over(partition_by=AiProcessingJobEvent.job_id, order_by=(AiProcessingJobEvent.created_at.desc(), AiProcessingJobEvent.id.desc())).label("rank")
    ranked = select(AiProcessingJobEvent.job_id, AiProcessingJobEvent.message, rank).where(AiProcessingJobEvent.job_id.in_(job_ids)).subquery()
    stmt = select(ranked.c.job_id, ranked.c.message).where(ranked.c.rank <= limit).order_by(ranked.c.job_id, ranked.c.rank.desc())
    messages: dict[str, list[str]] = {job_id: [] for job_id in job_ids}
    for job_id, message in (await session.execute(stmt)).all():
      messages[job_id].append(str(message))
    return messages

  def _model_to_record(self, row: AiProcessingJob, *, logs: list[str]) -> JobRecord:
    return JobRecord(
      job_id=row.id,
      document_id=row.document_id,
      status=row.status,  # type: ignore[arg-type]
      created_at=row.created_at,
      updated_at=row.updated_at,
      course_id=row.course_id,
      user_id=row.user_id,
      options=dict(row.options_json or {}),
      phase=row.phase,  # type: ignore[arg-type]
      progress=int(row.progress or 0),
      result=row.result,
      error=row.error,
      error_kind=row.error_kind,  # type: ignore[arg-type]
      version=int(row.version),
      claimed_by=row.claimed_by,
      lease_expires_at=row.lease_expires_at,
      retry_of_job_id=row.retry_of_job_id,
      started_at=row.started_at,
      completed_at=row.completed_at,
      logs=logs,
    )

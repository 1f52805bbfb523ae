"""Repository constructors shared by services and routes."""

from __future__ import annotations

from korsify.config import Settings
from korsify.storage.courses_repo import CoursesRepository
from korsify.storage.documents_repo import DocumentsRepository
from korsify.storage.jobs_repo import JobsRepository
from korsify.storage.postgres_courses_repo import PostgresCoursesRepository
from korsify.storage.postgres_documents_repo import PostgresDocumentsRepository
from korsify.storage.postgres_jobs_repo import PostgresJobsRepository


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the jobs repository for the configured database."""
  if not settings.pg_dsn:
    raise RuntimeError("KORSIFY_PG_DSN must be set to store jobs.")
  return PostgresJobsRepository()


def _get_documents_repo(settings: Settings) -> DocumentsRepository:
  if not settings.pg_dsn:
    raise RuntimeError("KORSIFY_PG_DSN must be set to read documents.")
  return PostgresDocumentsRepository()


def _get_courses_repo(settings: Settings) -> CoursesRepository:
  if not settings.pg_dsn:
    raise RuntimeError("KORSIFY_PG_DSN must be set to store courses.")
  return PostgresCoursesRepository()

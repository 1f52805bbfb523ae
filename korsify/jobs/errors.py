"""Error taxonomy for job processing failures."""

from __future__ import annotations

import asyncio

import httpx

from korsify.jobs.models import ErrorKind


class JobError(Exception):
  """Base class for failures that end a job run."""

  kind: ErrorKind = "permanent"


class TransientJobError(JobError):
  """Failure that may succeed if the job is retried later (rate limits, timeouts)."""

  kind: ErrorKind = "transient"


class PermanentJobError(JobError):
  """Failure that will recur on retry (missing document, invalid generated content)."""

  kind: ErrorKind = "permanent"


class JobLeaseLostError(Exception):
  """Raised when another writer changed the job row while this worker held it."""


def classify_exception(exc: BaseException) -> tuple[str, ErrorKind]:
  """Return the diagnostic message and error kind recorded for a failed job."""
  message = str(exc).strip() or type(exc).__name__
  if isinstance(exc, JobError):
    return message, exc.kind
  if isinstance(exc, TimeoutError | asyncio.TimeoutError | ConnectionError | httpx.TransportError):
    return message, "transient"
  return message, "permanent"

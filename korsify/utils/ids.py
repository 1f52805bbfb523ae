"""Identifier utilities."""

from __future__ import annotations

import os
import socket
import uuid


def generate_job_id() -> str:
  """Return a new job identifier."""
  return str(uuid.uuid4())


def generate_course_id() -> str:
  """Return a new course identifier."""
  return str(uuid.uuid4())


def generate_row_id() -> str:
  """Return a new identifier for module, lesson and quiz rows."""
  return str(uuid.uuid4())


def generate_worker_id() -> str:
  """Return a worker identity unique to this process invocation."""
  return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"

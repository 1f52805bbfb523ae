"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_ENV_LINE_RE = re.compile(r"^\s*(?:export\s+)?(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*=(?P<value>.*)$")


def _env_file_path() -> Path:
  """Return KORSIFY_ENV_FILE when set, else the .env at the repo root."""
  configured = os.getenv("KORSIFY_ENV_FILE")
  if configured:
    return Path(configured).expanduser()
  return Path(__file__).resolve().parents[1] / ".env"


def read_env_file(path: Path) -> dict[str, str]:
  """Parse KEY=value lines, dropping `export` prefixes and matching quotes."""
  values: dict[str, str] = {}
  if not path.is_file():
    return values

  for raw_line in path.read_text(encoding="utf-8").splitlines():
    match = _ENV_LINE_RE.match(raw_line)
    if match is None:
      continue
    value = match.group("value").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
      value = value[1:-1]
    values[match.group("key")] = value
  return values


def load_env_file(path: Path | None = None) -> None:
  """Seed the process environment from a .env file; variables already set win."""
  for key, value in read_env_file(path or _env_file_path()).items():
    os.environ.setdefault(key, value)


load_env_file()

_GENERATOR_PROVIDERS = {"gemini", "dummy"}
_TASK_SERVICE_PROVIDERS = {"local-http", "gcp"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Korsify course-generation service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  log_http_bodies: bool
  log_http_body_bytes: int
  pg_dsn: str | None
  pg_connect_timeout: int
  generator_provider: str
  gemini_api_key: str | None
  gemini_model: str
  document_max_chars: int
  quiz_max_attempts: int
  quiz_retry_delay_seconds: float
  job_lease_seconds: int
  jobs_auto_process: bool
  task_service_provider: str
  cloud_tasks_queue_path: str | None
  cloud_run_invoker_service_account: str | None
  base_url: str | None
  task_secret: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("KORSIFY_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("KORSIFY_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("KORSIFY_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("KORSIFY_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("KORSIFY_DEBUG"))

  log_max_bytes = _positive_int("KORSIFY_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("KORSIFY_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("KORSIFY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions and request/response bodies for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("KORSIFY_LOG_HTTP_4XX"))
  log_http_bodies = _parse_bool(os.getenv("KORSIFY_LOG_HTTP_BODIES"))
  log_http_body_bytes = _positive_int("KORSIFY_LOG_HTTP_BODY_BYTES", "2048")

  generator_provider = (os.getenv("KORSIFY_GENERATOR_PROVIDER") or "gemini").strip().lower()
  if generator_provider not in _GENERATOR_PROVIDERS:
    raise ValueError(f"KORSIFY_GENERATOR_PROVIDER must be one of: {', '.join(sorted(_GENERATOR_PROVIDERS))}.")

  task_service_provider = (os.getenv("KORSIFY_TASK_SERVICE_PROVIDER") or "local-http").strip().lower()
  if task_service_provider not in _TASK_SERVICE_PROVIDERS:
    raise ValueError(f"KORSIFY_TASK_SERVICE_PROVIDER must be one of: {', '.join(sorted(_TASK_SERVICE_PROVIDERS))}.")

  quiz_retry_delay_seconds = float(os.getenv("KORSIFY_QUIZ_RETRY_DELAY_SECONDS", "2"))
  if quiz_retry_delay_seconds < 0:
    raise ValueError("KORSIFY_QUIZ_RETRY_DELAY_SECONDS must not be negative.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("KORSIFY_ALLOWED_ORIGINS")),
    debug=debug,
    log_dir=(os.getenv("KORSIFY_LOG_DIR") or "./logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    log_http_bodies=log_http_bodies,
    log_http_body_bytes=log_http_body_bytes,
    pg_dsn=os.getenv("KORSIFY_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("KORSIFY_PG_CONNECT_TIMEOUT", "5"),
    generator_provider=generator_provider,
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=(os.getenv("KORSIFY_GEMINI_MODEL") or "gemini-2.5-flash").strip(),
    document_max_chars=_positive_int("KORSIFY_DOCUMENT_MAX_CHARS", "200000"),
    quiz_max_attempts=_positive_int("KORSIFY_QUIZ_MAX_ATTEMPTS", "3"),
    quiz_retry_delay_seconds=quiz_retry_delay_seconds,
    job_lease_seconds=_positive_int("KORSIFY_JOB_LEASE_SECONDS", "900"),
    # Default to enqueuing new jobs immediately; tests and scripts can opt out.
    jobs_auto_process=_parse_bool(os.getenv("KORSIFY_JOBS_AUTO_PROCESS"), default=True),
    task_service_provider=task_service_provider,
    cloud_tasks_queue_path=_optional_str(os.getenv("KORSIFY_CLOUD_TASKS_QUEUE_PATH")),
    cloud_run_invoker_service_account=_optional_str(os.getenv("KORSIFY_CLOUD_RUN_INVOKER_SERVICE_ACCOUNT")),
    base_url=_optional_str(os.getenv("KORSIFY_BASE_URL")),
    task_secret=_optional_str(os.getenv("KORSIFY_TASK_SECRET")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("KORSIFY_DEBUG"))
  pg_connect_timeout = _positive_int("KORSIFY_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("KORSIFY_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value

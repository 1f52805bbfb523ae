import logging
import os
import subprocess
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import urlparse

from fastapi import FastAPI

from korsify.core.database import get_db_engine
from korsify.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and optional migrations once uvicorn has started."""
  from korsify.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("korsify.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
    logger.info("Generator provider=%s task provider=%s", settings.generator_provider, settings.task_service_provider)

    if _parse_env_bool(os.getenv("KORSIFY_AUTO_APPLY_MIGRATIONS")):
      # Production-like environments migrate from the deploy pipeline unless forced.
      if settings.environment in {"production", "prod", "stage", "staging"} and not _parse_env_bool(os.getenv("KORSIFY_FORCE_STARTUP_MIGRATIONS")):
        logger.info("Skipping startup migrations for environment=%s", settings.environment)
      else:
        logger.info("Auto-apply migrations enabled; KORSIFY_PG_DSN=%s", _redact_dsn(settings.pg_dsn))
        repo_root = Path(__file__).resolve().parents[2]
        subprocess.run([sys.executable, "-m", "alembic", "upgrade", "head"], check=True, cwd=repo_root)

  except subprocess.CalledProcessError:
    logger.warning("Startup migrations failed; migrator returned non-zero exit status.", exc_info=True)

  yield

  engine = get_db_engine()
  if engine is not None:
    await engine.dispose()


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"


def _parse_env_bool(value: str | None) -> bool:
  if value is None:
    return False
  return value.strip().lower() in {"1", "true", "yes", "on"}

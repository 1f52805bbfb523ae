"""Retry logic with specific backoff strategy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from korsify.jobs.errors import TransientJobError

T = TypeVar("T")
logger = logging.getLogger(__name__)

DEFAULT_DELAYS: tuple[float, ...] = (5, 20, 50)


def is_rate_limit_error(exc: BaseException) -> bool:
  """Return True for 429/quota failures reported by the AI provider."""
  code = getattr(exc, "code", None)
  if code == 429:
    return True
  error_msg = str(exc)
  is_quota_error = "Resource Exhausted" in error_msg or "RESOURCE_EXHAUSTED" in error_msg or "Quota Exceeded" in error_msg
  is_rate_limit = "429" in error_msg or "Too Many Requests" in error_msg
  return is_quota_error or is_rate_limit


async def retry_with_backoff(func: Callable[..., Awaitable[T]], *args, delays: Sequence[float] = DEFAULT_DELAYS, **kwargs) -> T:
  """
  Execute a function with retries for 429/Quota errors.

  Delays: 5s, 20s, 50s, then one final attempt. A rate limit on the final
  attempt surfaces as ``TransientJobError`` so the job records it as retryable.
  """
  for attempt, delay in enumerate(delays):
    try:
      return await func(*args, **kwargs)
    except Exception as e:
      if not is_rate_limit_error(e):
        raise
      logger.warning("Retry attempt %d/%d needed. Error: %s. Retrying in %ss...", attempt + 1, len(delays), e, delay)
      await asyncio.sleep(delay)

  try:
    return await func(*args, **kwargs)
  except Exception as e:
    if is_rate_limit_error(e):
      raise TransientJobError(f"AI provider rate limit: {e}") from e
    raise

from __future__ import annotations

import json

import pytest

from korsify.ai.backoff import is_rate_limit_error, retry_with_backoff
from korsify.ai.json_parser import parse_json_with_fallback, strip_json_fences
from korsify.jobs.errors import TransientJobError


class _ApiError(Exception):
  def __init__(self, code: int, message: str) -> None:
    super().__init__(message)
    self.code = code


def test_strip_json_fences() -> None:
  assert strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
  assert strip_json_fences('  {"a": 1} ') == '{"a": 1}'


def test_parse_json_with_fallback_recovers_common_slips() -> None:
  assert parse_json_with_fallback('{"a": [1, 2]}') == {"a": [1, 2]}
  assert parse_json_with_fallback('Here you go: {"title": "Cells [1]"} Enjoy!') == {"title": "Cells [1]"}
  assert parse_json_with_fallback('[{"q": "x"},]') == [{"q": "x"}]


def test_parse_json_with_fallback_raises_on_garbage() -> None:
  with pytest.raises(json.JSONDecodeError):
    parse_json_with_fallback("no json here")


def test_is_rate_limit_error() -> None:
  assert is_rate_limit_error(_ApiError(429, "slow down"))
  assert is_rate_limit_error(RuntimeError("RESOURCE_EXHAUSTED: quota"))
  assert is_rate_limit_error(RuntimeError("HTTP 429 Too Many Requests"))
  assert not is_rate_limit_error(RuntimeError("invalid argument"))


@pytest.mark.anyio
async def test_retry_with_backoff_retries_rate_limits() -> None:
  calls: list[int] = []

  async def _flaky(value: str) -> str:
    calls.append(1)
    if len(calls) < 3:
      raise _ApiError(429, "Resource Exhausted")
    return value

  assert await retry_with_backoff(_flaky, "ok", delays=(0, 0, 0)) == "ok"
  assert len(calls) == 3


@pytest.mark.anyio
async def test_retry_with_backoff_surfaces_exhaustion_as_transient() -> None:
  calls: list[int] = []

  async def _always_limited() -> None:
    calls.append(1)
    raise _ApiError(429, "Quota Exceeded")

  with pytest.raises(TransientJobError):
    await retry_with_backoff(_always_limited, delays=(0, 0))
  assert len(calls) == 3


@pytest.mark.anyio
async def test_retry_with_backoff_does_not_retry_other_errors() -> None:
  calls: list[int] = []

  async def _broken() -> None:
    calls.append(1)
    raise ValueError("bad prompt")

  with pytest.raises(ValueError):
    await retry_with_backoff(_broken, delays=(0, 0, 0))
  assert len(calls) == 1

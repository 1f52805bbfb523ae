"""Text extraction from uploaded documents."""

from __future__ import annotations

import html
import io
import logging
import re
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
from pypdf import PdfReader
from pypdf.errors import PdfReadError
from starlette.concurrency import run_in_threadpool

from korsify.jobs.errors import PermanentJobError, TransientJobError
from korsify.storage.documents_repo import DocumentRecord, DocumentsRepository

logger = logging.getLogger(__name__)

_TEXT_TYPES = {"text/plain", "text/markdown", "text/x-markdown", "txt", "md", "markdown"}
_HTML_TYPES = {"text/html", "html", "htm"}
_PDF_TYPES = {"application/pdf", "pdf"}
_TAG_RE = re.compile(r"<(script|style)\b.*?</\1>|<[^>]+>", re.DOTALL | re.IGNORECASE)
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")
_FETCH_TIMEOUT_SECONDS = 30.0


def _normalize_type(file_type: str, file_name: str) -> str:
  normalized = (file_type or "").strip().lower()
  if normalized in _TEXT_TYPES | _HTML_TYPES | _PDF_TYPES:
    return normalized
  suffix = Path(file_name).suffix.lower().lstrip(".")
  return suffix or normalized


def _html_to_text(raw: str) -> str:
  stripped = _TAG_RE.sub("\n", raw)
  return _BLANK_LINES_RE.sub("\n\n", html.unescape(stripped)).strip()


def _pdf_to_text(data: bytes) -> str:
  try:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
  except PdfReadError as e:
    raise PermanentJobError(f"Could not read PDF: {e}") from e
  return "\n\n".join(page.strip() for page in pages if page.strip())


async def _read_bytes(storage_url: str, *, transport: httpx.AsyncBaseTransport | None = None) -> bytes:
  parsed = urlparse(storage_url)
  if parsed.scheme in {"http", "https"}:
    try:
      async with httpx.AsyncClient(timeout=_FETCH_TIMEOUT_SECONDS, follow_redirects=True, transport=transport) as client:
        response = await client.get(storage_url)
        response.raise_for_status()
        return response.content
    except httpx.HTTPStatusError as e:
      if e.response.status_code >= 500:
        raise TransientJobError(f"Document download failed with status {e.response.status_code}") from e
      raise PermanentJobError(f"Document download failed with status {e.response.status_code}") from e
    except httpx.TransportError as e:
      raise TransientJobError(f"Document download failed: {e}") from e

  path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(storage_url)
  if not path.is_file():
    raise PermanentJobError(f"Document file not found: {storage_url}")
  return await run_in_threadpool(path.read_bytes)


async def extract_text(document: DocumentRecord, *, transport: httpx.AsyncBaseTransport | None = None) -> str:
  """Read the stored file and return its plain text."""
  kind = _normalize_type(document.file_type, document.file_name)
  if kind not in _TEXT_TYPES | _HTML_TYPES | _PDF_TYPES:
    raise PermanentJobError(f"Unsupported document type: {document.file_type or 'unknown'}")

  data = await _read_bytes(document.storage_url, transport=transport)
  if kind in _PDF_TYPES:
    text = await run_in_threadpool(_pdf_to_text, data)
  else:
    text = data.decode("utf-8", errors="replace")
    if kind in _HTML_TYPES:
      text = _html_to_text(text)
  return text.strip()


async def load_document_content(document_id: str, *, documents_repo: DocumentsRepository, max_chars: int) -> tuple[DocumentRecord, str]:
  """Return the document and its text, extracting and persisting it on first use."""
  document = await documents_repo.get_document(document_id)
  if document is None:
    raise PermanentJobError("Document not found")

  content = document.processed_content
  if not content:
    content = await extract_text(document)
    if not content:
      raise PermanentJobError(f"No text could be extracted from {document.file_name}")
    await documents_repo.save_processed_content(document_id, content)
  if len(content) > max_chars:
    logger.info("Truncating %s from %d to %d chars", document.file_name, len(content), max_chars)
    content = content[:max_chars]
  return document, content

"""Storage interfaces and records for uploaded source documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DocumentRecord:
  """Uploaded document as seen by the generation pipeline."""

  document_id: str
  file_name: str
  file_type: str
  storage_url: str
  uploaded_by: str
  processed_content: str | None = None
  file_size: int = 0


class DocumentsRepository(Protocol):
  """Repository contract for documents."""

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    """Fetch a document by identifier."""

  async def save_processed_content(self, document_id: str, content: str) -> None:
    """Store extracted text so later runs skip extraction."""

"""Postgres-backed repository for documents using SQLAlchemy."""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from korsify.core.database import get_session_factory
from korsify.schema.courses import Document
from korsify.storage.documents_repo import DocumentRecord, DocumentsRepository


class PostgresDocumentsRepository(DocumentsRepository):
  """Read documents and persist their extracted text."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get_document(self, document_id: str) -> DocumentRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Document, document_id)
      if row is None:
        return None
      return DocumentRecord(
        document_id=row.id,
        file_name=row.file_name,
        file_type=row.file_type,
        storage_url=row.storage_url,
        uploaded_by=row.uploaded_by,
        processed_content=row.processed_content,
        file_size=int(row.file_size or 0),
      )

  async def save_processed_content(self, document_id: str, content: str) -> None:
    async with self._session_factory() as session:
      await session.execute(update(Document).where(Document.id == document_id).values(processed_content=content, status="processed"))
      await session.commit()

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest

from korsify.jobs.errors import PermanentJobError, TransientJobError
from korsify.services.documents import extract_text, load_document_content


@pytest.mark.anyio
async def test_load_document_content_uses_processed_text(documents_repo, document) -> None:
  loaded, content = await load_document_content("doc-1", documents_repo=documents_repo, max_chars=50)

  assert loaded.document_id == "doc-1"
  assert content == document.processed_content[:50]
  assert documents_repo.saved == {}


@pytest.mark.anyio
async def test_load_document_content_extracts_and_persists_text(tmp_path, documents_repo, document) -> None:
  source = tmp_path / "notes.md"
  source.write_text("# Cells\n\nCells are the unit of life.\n", encoding="utf-8")
  documents_repo.documents["doc-1"] = replace(document, file_name="notes.md", file_type="text/markdown", storage_url=str(source), processed_content=None)

  _, content = await load_document_content("doc-1", documents_repo=documents_repo, max_chars=10_000)

  assert content == "# Cells\n\nCells are the unit of life."
  assert documents_repo.saved["doc-1"] == content


@pytest.mark.anyio
async def test_load_document_content_missing_document(documents_repo) -> None:
  with pytest.raises(PermanentJobError, match="Document not found"):
    await load_document_content("nope", documents_repo=documents_repo, max_chars=100)


@pytest.mark.anyio
async def test_extract_text_strips_html(tmp_path, document) -> None:
  source = tmp_path / "page.html"
  source.write_text("<html><head><style>p {color: red}</style></head><body><h1>Cells</h1><p>Life &amp; energy</p></body></html>", encoding="utf-8")

  text = await extract_text(replace(document, file_name="page.html", file_type="text/html", storage_url=source.as_uri()))

  assert "Cells" in text
  assert "Life & energy" in text
  assert "color" not in text
  assert "<" not in text


@pytest.mark.anyio
async def test_extract_text_rejects_unsupported_types(document) -> None:
  with pytest.raises(PermanentJobError, match="Unsupported document type"):
    await extract_text(replace(document, file_name="slides.pptx", file_type="application/vnd.ms-powerpoint"))


@pytest.mark.anyio
async def test_extract_text_missing_file(document) -> None:
  with pytest.raises(PermanentJobError, match="Document file not found"):
    await extract_text(replace(document, processed_content=None))


def _pdf_bytes(text: str) -> bytes:
  """Build a one-page PDF that draws ``text`` in Helvetica."""
  stream = f"BT /F1 18 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
  objects = [
    b"<< /Type /Catalog /Pages 2 0 R >>",
    b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
    b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
    b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
    b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
  ]
  out = bytearray(b"%PDF-1.4\n")
  offsets = []
  for number, body in enumerate(objects, start=1):
    offsets.append(len(out))
    out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
  xref_offset = len(out)
  out += b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1)
  for offset in offsets:
    out += b"%010d 00000 n \n" % offset
  out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_offset)
  return bytes(out)


def _serve(status_code: int, content: bytes = b"") -> httpx.MockTransport:
  return httpx.MockTransport(lambda request: httpx.Response(status_code, content=content))


@pytest.mark.anyio
async def test_extract_text_reads_pdf(tmp_path, document) -> None:
  source = tmp_path / "cells.pdf"
  source.write_bytes(_pdf_bytes("Cells are the unit of life"))

  text = await extract_text(replace(document, file_name="cells.pdf", file_type="application/pdf", storage_url=source.as_uri()))

  assert "Cells are the unit of life" in text


@pytest.mark.anyio
async def test_extract_text_corrupt_pdf_is_permanent(tmp_path, document) -> None:
  source = tmp_path / "broken.pdf"
  source.write_bytes(b"this is not a pdf at all")

  with pytest.raises(PermanentJobError, match="Could not read PDF"):
    await extract_text(replace(document, file_name="broken.pdf", file_type="application/pdf", storage_url=str(source)))


@pytest.mark.anyio
async def test_extract_text_downloads_remote_file(document) -> None:
  remote = replace(document, file_name="notes.txt", file_type="text/plain", storage_url="https://files.example.com/notes.txt")

  text = await extract_text(remote, transport=_serve(200, b"  Mitochondria make energy.\n"))

  assert text == "Mitochondria make energy."


@pytest.mark.anyio
async def test_remote_server_error_is_transient(document) -> None:
  remote = replace(document, storage_url="https://files.example.com/biology.txt")
  with pytest.raises(TransientJobError, match="status 503"):
    await extract_text(remote, transport=_serve(503))


@pytest.mark.anyio
async def test_remote_missing_file_is_permanent(document) -> None:
  remote = replace(document, storage_url="https://files.example.com/biology.txt")
  with pytest.raises(PermanentJobError, match="status 404"):
    await extract_text(remote, transport=_serve(404))

"""
Unit Tests for Document Chunking

Tests for chunk_document() and extract_pages().
"""

import fitz
import pytest

from question_toolkit.common.errors import ConfigurationError, InvalidDocumentError
from question_toolkit.core.models.chunks import Chunk, Document
from question_toolkit.extractor.chunker import chunk_document, extract_pages


def _page_count(payload: bytes) -> int:
    with fitz.open(stream=payload, filetype="pdf") as doc:
        return doc.page_count


class TestDocument:
    """Tests for Document.from_bytes()."""

    def test_from_bytes_when_valid_pdf_then_counts_pages(self, make_pdf):
        document = Document.from_bytes(make_pdf(3), name="paper.pdf")
        assert document.page_count == 3
        assert document.name == "paper.pdf"

    def test_from_bytes_when_empty_then_raises_invalid_document(self):
        with pytest.raises(InvalidDocumentError, match="empty"):
            Document.from_bytes(b"")

    def test_from_bytes_when_not_pdf_then_raises_invalid_document(self):
        with pytest.raises(InvalidDocumentError):
            Document.from_bytes(b"this is not a pdf at all")

    def test_from_bytes_when_caller_mutates_buffer_then_document_unchanged(self, make_pdf):
        buffer = bytearray(make_pdf(1))
        document = Document.from_bytes(buffer)
        buffer[:4] = b"XXXX"
        assert document.data.startswith(b"%PDF")


class TestChunkDocument:
    """Tests for chunk_document()."""

    def test_chunk_document_when_twelve_pages_then_three_contiguous_chunks(self, make_pdf):
        # Arrange
        document = Document.from_bytes(make_pdf(12))

        # Act
        chunks = chunk_document(document, pages_per_chunk=5)

        # Assert
        assert [(c.start_page, c.end_page) for c in chunks] == [(1, 5), (6, 10), (11, 12)]
        assert [c.index for c in chunks] == [0, 1, 2]
        assert [_page_count(c.payload) for c in chunks] == [5, 5, 2]

    @pytest.mark.parametrize("pages,size", [(1, 5), (5, 5), (6, 5), (7, 1), (9, 4)])
    def test_chunk_document_when_any_size_then_pages_covered_exactly_once(self, make_pdf, pages, size):
        chunks = chunk_document(Document.from_bytes(make_pdf(pages, with_figure=False)), size)

        covered = [p for c in chunks for p in range(c.start_page, c.end_page + 1)]
        assert covered == list(range(1, pages + 1))
        assert len(chunks) == -(-pages // size)
        assert all(c.page_count <= size for c in chunks)

    @pytest.mark.parametrize("size", [0, -1, True, 2.5])
    def test_chunk_document_when_size_invalid_then_raises_configuration_error(self, make_pdf, size):
        document = Document.from_bytes(make_pdf(2))
        with pytest.raises(ConfigurationError):
            chunk_document(document, size)


class TestChunk:
    """Tests for Chunk page mapping."""

    def test_absolute_page_when_local_in_range_then_offsets(self):
        chunk = Chunk(index=1, start_page=6, end_page=10, payload=b"")
        assert chunk.absolute_page(1) == 6
        assert chunk.absolute_page(5) == 10

    def test_absolute_page_when_local_out_of_range_then_raises(self):
        chunk = Chunk(index=1, start_page=6, end_page=10, payload=b"")
        with pytest.raises(ValueError, match="outside chunk"):
            chunk.absolute_page(6)


class TestExtractPages:
    """Tests for extract_pages()."""

    def test_extract_pages_when_unsorted_then_sorted_subset(self, make_pdf):
        document = Document.from_bytes(make_pdf(5))
        assert _page_count(extract_pages(document, [4, 2, 2])) == 2

    def test_extract_pages_when_page_outside_then_raises(self, make_pdf):
        document = Document.from_bytes(make_pdf(2))
        with pytest.raises(ValueError, match="outside document"):
            extract_pages(document, [3])

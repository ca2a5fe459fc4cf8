"""
Module: chunks

Purpose:
    Provides the Document and Chunk dataclasses. A Document is an opened
    source PDF held in memory for one pipeline run; a Chunk is a
    contiguous page range of it, carried as a standalone PDF payload.

Key Functions:
    - Document.from_bytes(data): Open and count pages
    - Chunk.absolute_page(local): Map a chunk-local page to the document

Dependencies:
    - fitz (PyMuPDF): Page counting
    - common.errors: InvalidDocumentError

Used By:
    - extractor.chunker: Builds chunks
    - extractor.flagging: Chunk-local page arithmetic
    - extractor.localizer: Page rendering
"""

from __future__ import annotations

from dataclasses import dataclass

import fitz

from question_toolkit.common.errors import InvalidDocumentError


@dataclass(frozen=True)
class Document:
    """
    Source PDF for one run.

    Attributes:
        data: Raw PDF bytes (an immutable copy of the caller's buffer)
        page_count: Number of pages
        name: Display name used in logs
    """

    data: bytes
    page_count: int
    name: str = "document.pdf"

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "document.pdf") -> Document:
        """
        Open PDF bytes and count pages.

        Raises:
            InvalidDocumentError: If the bytes are empty, not a PDF, or the
                document has zero pages.
        """
        if not data:
            raise InvalidDocumentError(f"{name}: document is empty")
        payload = bytes(data)
        try:
            with fitz.open(stream=payload, filetype="pdf") as doc:
                page_count = doc.page_count
        except (RuntimeError, ValueError) as e:
            raise InvalidDocumentError(f"{name}: could not open PDF ({e})") from e
        if page_count == 0:
            raise InvalidDocumentError(f"{name}: document has no extractable pages")
        return cls(data=payload, page_count=page_count, name=name)

    def open(self) -> fitz.Document:
        """Open a fresh PyMuPDF handle. Callers must close it."""
        return fitz.open(stream=self.data, filetype="pdf")


@dataclass(frozen=True)
class Chunk:
    """
    Contiguous page range of a Document.

    Attributes:
        index: 0-based position in the chunk sequence
        start_page: First page, 1-indexed, inclusive
        end_page: Last page, 1-indexed, inclusive
        payload: Standalone PDF containing exactly these pages

    Invariants:
        - 1 <= start_page <= end_page
    """

    index: int
    start_page: int
    end_page: int
    payload: bytes

    def __post_init__(self) -> None:
        if self.start_page < 1:
            raise ValueError(f"start_page must be >= 1: {self.start_page}")
        if self.end_page < self.start_page:
            raise ValueError(f"end_page must be >= start_page: {self.end_page} < {self.start_page}")

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1

    def absolute_page(self, local_page: int) -> int:
        """
        Map a 1-indexed chunk-local page to the absolute document page.

        Raises:
            ValueError: If local_page lies outside the chunk.
        """
        if not 1 <= local_page <= self.page_count:
            raise ValueError(
                f"Local page {local_page} outside chunk {self.index} "
                f"(pages 1-{self.page_count})"
            )
        return self.start_page - 1 + local_page

    def __repr__(self) -> str:
        return f"Chunk({self.index}, pages {self.start_page}-{self.end_page}, {len(self.payload)} bytes)"

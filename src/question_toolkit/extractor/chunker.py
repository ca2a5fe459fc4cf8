"""
Module: extractor.chunker

Purpose:
    Splits a source PDF into contiguous fixed-size page ranges, each
    carried as a standalone PDF payload small enough for one extraction
    call.

Key Functions:
    - chunk_document(): Split a Document into Chunks
    - extract_pages(): Build a PDF from an arbitrary page subset

Dependencies:
    - fitz (PyMuPDF): PDF page copying

Used By:
    - extractor.pipeline: Chunks the question paper
    - extractor.localizer: Builds per-batch page subsets
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List

import fitz

from question_toolkit.common.errors import ConfigurationError, InvalidDocumentError
from question_toolkit.core.models.chunks import Chunk, Document

logger = logging.getLogger(__name__)


def chunk_document(document: Document, pages_per_chunk: int = 5) -> List[Chunk]:
    """
    Split a document into ceil(N / pages_per_chunk) contiguous chunks.

    The last chunk may be shorter. Chunks never overlap and together
    cover every page exactly once.

    Args:
        document: Opened source document.
        pages_per_chunk: Positive page count per chunk.

    Returns:
        Chunks in page order, indexed from 0.

    Raises:
        ConfigurationError: If pages_per_chunk is not a positive integer.
        InvalidDocumentError: If the document has zero pages.

    Example:
        >>> chunks = chunk_document(doc, pages_per_chunk=5)   # 12 pages
        >>> [(c.start_page, c.end_page) for c in chunks]
        [(1, 5), (6, 10), (11, 12)]
    """
    if isinstance(pages_per_chunk, bool) or not isinstance(pages_per_chunk, int) or pages_per_chunk < 1:
        raise ConfigurationError(f"pages_per_chunk must be a positive integer: {pages_per_chunk!r}")
    if document.page_count < 1:
        raise InvalidDocumentError(f"{document.name}: document has no extractable pages")

    total = document.page_count
    chunk_count = math.ceil(total / pages_per_chunk)
    chunks: List[Chunk] = []

    with document.open() as source:
        for index in range(chunk_count):
            start = index * pages_per_chunk + 1
            end = min(start + pages_per_chunk - 1, total)
            with fitz.open() as out:
                out.insert_pdf(source, from_page=start - 1, to_page=end - 1)
                payload = out.tobytes()
            chunks.append(Chunk(index=index, start_page=start, end_page=end, payload=payload))

    logger.info(
        f"{document.name}: split {total} pages into {len(chunks)} chunk(s) of up to {pages_per_chunk}",
        extra={"page_count": total, "chunk_count": len(chunks)},
    )
    return chunks


def extract_pages(document: Document, pages: Iterable[int]) -> bytes:
    """
    Build a standalone PDF containing the given 1-indexed pages, sorted.

    Raises:
        ValueError: If pages is empty or contains a page outside the document.
    """
    selected = sorted(set(pages))
    if not selected:
        raise ValueError("pages must not be empty")
    for page in selected:
        if not 1 <= page <= document.page_count:
            raise ValueError(f"Page {page} outside document (1-{document.page_count})")

    with document.open() as source, fitz.open() as out:
        for page in selected:
            out.insert_pdf(source, from_page=page - 1, to_page=page - 1)
        return out.tobytes()

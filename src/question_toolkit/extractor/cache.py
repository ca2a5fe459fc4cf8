"""
Module: extractor.cache

Purpose:
    Page render caching for image localization. Caches full-page renders
    so a page holding several diagrams is rasterized once per batch.

    Each localization batch owns its own cache (and its own PyMuPDF
    handle), so batches can run on separate threads without sharing state.

Key Classes:
    - PageRenderCache: LRU cache for rendered page images

Dependencies:
    - PIL.Image: Image handling
    - fitz (PyMuPDF): PDF rendering

Used By:
    - extractor.localizer: One cache per page batch
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Optional

import fitz
from PIL import Image

from question_toolkit.core.models.chunks import Document

logger = logging.getLogger(__name__)


class PageRenderCache:
    """
    LRU cache for rendered page images of one document.

    Attributes:
        dpi: Render resolution.
        max_pages: Maximum number of pages to cache.

    Example:
        >>> with PageRenderCache(document, dpi=220) as cache:
        ...     img = cache.get_or_render(3)
        ...     img2 = cache.get_or_render(3)  # Cache hit
    """

    def __init__(self, document: Document, dpi: int, max_pages: int = 8):
        """
        Args:
            document: Source document; opened lazily on first render.
            dpi: Resolution for rendering.
            max_pages: Maximum pages to cache (~7MB each as RGB at 220 DPI).
        """
        self._document = document
        self._doc: Optional[fitz.Document] = None
        self._cache: "OrderedDict[int, Image.Image]" = OrderedDict()
        self.dpi = dpi
        self.max_pages = max_pages
        self.hits = 0
        self.misses = 0

    def __enter__(self) -> PageRenderCache:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get_or_render(self, page_number: int) -> Image.Image:
        """
        Get cached page render or create a new one.

        Args:
            page_number: 1-indexed absolute page number.

        Returns:
            Full-page RGB image.

        Raises:
            ValueError: If the page is outside the document.
        """
        if page_number in self._cache:
            self._cache.move_to_end(page_number)
            self.hits += 1
            logger.debug(f"Cache HIT: page {page_number} at {self.dpi} DPI")
            return self._cache[page_number]

        image = render_page(self._open(), page_number, self.dpi)
        self.misses += 1

        if len(self._cache) >= self.max_pages:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug(f"Cache EVICT: page {evicted}")

        self._cache[page_number] = image
        logger.debug(f"Cache MISS: rendered page {page_number} at {self.dpi} DPI")
        return image

    def close(self) -> None:
        """Clear the cache and release the document handle."""
        self._cache.clear()
        if self._doc is not None:
            self._doc.close()
            self._doc = None

    @property
    def size(self) -> int:
        """Number of pages currently cached."""
        return len(self._cache)

    def _open(self) -> fitz.Document:
        if self._doc is None:
            self._doc = self._document.open()
        return self._doc


def render_page(doc: fitz.Document, page_number: int, dpi: int) -> Image.Image:
    """Rasterize one 1-indexed page to an RGB image."""
    if not 1 <= page_number <= doc.page_count:
        raise ValueError(f"Page {page_number} outside document (1-{doc.page_count})")
    page = doc[page_number - 1]
    matrix = fitz.Matrix(dpi / 72.0, dpi / 72.0)
    pix = page.get_pixmap(matrix=matrix, alpha=False, colorspace=fitz.csRGB)
    return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

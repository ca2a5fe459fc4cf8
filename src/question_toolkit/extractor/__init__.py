"""
Question paper extraction.

Public API:
    extract(document_bytes, answer_key_bytes=None, *, client, store, config)
    Extractor(client, store, config).extract(...)
"""

from .chunker import chunk_document, extract_pages
from .config import ExtractionConfig, LocalizerConfig
from .diagnostics import FailureScope, PartialFailure
from .flagging import flag_records
from .localizer import ImageLocalizer, ItemOutcome, ItemResult, LocalizationReport
from .pipeline import ExtractionResult, Extractor, extract
from .repair import PayloadShape, RecordParseResult, repair, repair_records

__all__ = [
    "ExtractionConfig",
    "ExtractionResult",
    "Extractor",
    "FailureScope",
    "ImageLocalizer",
    "ItemOutcome",
    "ItemResult",
    "LocalizationReport",
    "LocalizerConfig",
    "PartialFailure",
    "PayloadShape",
    "RecordParseResult",
    "chunk_document",
    "extract",
    "extract_pages",
    "flag_records",
    "repair",
    "repair_records",
]

"""
Module: extractor.pipeline

Purpose:
    Main extraction orchestrator. Splits a question paper into chunks,
    extracts structured records from each chunk with one model call,
    repairs and validates the responses, flags image presence, then runs
    image localization. Returns a result envelope instead of raising.

Key Functions:
    - extract(): Process a question paper (plus optional answer key)
    - Extractor: Same, with collaborators injected once

Dependencies:
    - client.transport: EXTRACTION calls
    - extractor.chunker / repair / flagging / localizer
    - storage.assets: Asset uploads during localization

Used By:
    - Application code (web handlers, batch jobs)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from question_toolkit.client.transport import BlobPart, EndpointVariant, GenerationClient, TextPart
from question_toolkit.common.errors import PayloadError, QuestionToolkitError, TransportError
from question_toolkit.core.models.chunks import Chunk, Document
from question_toolkit.core.models.records import CandidateRecord
from question_toolkit.storage.assets import AssetStore

from .chunker import chunk_document
from .config import ExtractionConfig
from .diagnostics import DiagnosticsCollector, FailureScope, PartialFailure
from .flagging import flag_records
from .localizer import ImageLocalizer
from .prompts import build_extraction_prompt
from .repair import RejectedRecord, repair_records
from .timing import TimingLog, timed_phase

logger = logging.getLogger(__name__)

SOURCE_NAME = "gemini"


@dataclass
class ExtractionResult:
    """
    Envelope returned by extract().

    Attributes:
        success: False only when no usable record was produced
        records: Validated records in document order
        metadata: parsed_at, has_answer_key, source, model, page_count,
            chunk_count, record_count, rejected_count, localization, timings
        error: Human-readable cause when success is False
        failures: Partial failures recorded during the run
        rejected: Parsed elements that failed validation
    """

    success: bool
    records: List[CandidateRecord] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    failures: List[PartialFailure] = field(default_factory=list)
    rejected: List[RejectedRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "questions": [record.to_dict() for record in self.records],
            "total_questions": len(self.records),
            "metadata": self.metadata,
            "error": self.error,
            "failures": [failure.to_dict() for failure in self.failures],
        }


@dataclass
class _ChunkOutcome:
    records: List[CandidateRecord] = field(default_factory=list)
    rejected: List[RejectedRecord] = field(default_factory=list)
    error: Optional[str] = None


class Extractor:
    """
    Question paper extractor with injected collaborators.

    Args:
        client: Generation client (EXTRACTION and LOCALIZATION calls)
        store: Asset store for located images; None skips localization
        config: Extraction settings

    Example:
        >>> extractor = Extractor(GenerationClient(ClientConfig.from_env()),
        ...                       LocalAssetStore(Path("assets")),
        ...                       ExtractionConfig.from_env())
        >>> result = extractor.extract(Path("paper.pdf").read_bytes())
        >>> result.success, len(result.records)
        (True, 40)
    """

    def __init__(
        self,
        client: GenerationClient,
        store: Optional[AssetStore],
        config: Optional[ExtractionConfig] = None,
    ):
        self.client = client
        self.store = store
        self.config = config or ExtractionConfig()

    def extract(
        self,
        document_bytes: bytes,
        answer_key_bytes: Optional[bytes] = None,
        *,
        name: str = "document.pdf",
    ) -> ExtractionResult:
        """
        Extract records from a question paper.

        Library errors never escape: an unreadable document, or a run in
        which every chunk failed, yields ``success=False`` with ``error``
        set. Partial failures are listed in ``failures``.
        """
        diagnostics = DiagnosticsCollector()
        timing = TimingLog()
        metadata: Dict[str, Any] = {
            "parsed_at": datetime.now(timezone.utc).isoformat(),
            "has_answer_key": bool(answer_key_bytes),
            "source": SOURCE_NAME,
            "model": self.client.model_for(EndpointVariant.EXTRACTION),
        }

        try:
            with timed_phase(timing, "open_documents"):
                document = Document.from_bytes(document_bytes, name=name)
                answer_key = (
                    Document.from_bytes(answer_key_bytes, name="answer-key.pdf")
                    if answer_key_bytes
                    else None
                )
            with timed_phase(timing, "chunking"):
                chunks = chunk_document(document, self.config.pages_per_chunk)
        except QuestionToolkitError as e:
            logger.error(f"{name}: extraction aborted: {e}")
            metadata["timings"] = timing.to_dict()
            return ExtractionResult(success=False, metadata=metadata, error=str(e))

        metadata["page_count"] = document.page_count
        metadata["chunk_count"] = len(chunks)

        with timed_phase(timing, "extraction"):
            outcomes = self._process_chunks(chunks, answer_key, diagnostics, timing)

        records: List[CandidateRecord] = []
        rejected: List[RejectedRecord] = []
        for outcome in outcomes:
            records.extend(outcome.records)
            rejected.extend(outcome.rejected)
        _ensure_unique_ids(records)

        localization: Dict[str, Any] = {}
        if records and self.config.localize_images and self.store is not None:
            localizer = ImageLocalizer(
                self.client,
                self.store,
                self.config.localizer,
                diagnostics=diagnostics,
                timing=timing,
            )
            with timed_phase(timing, "localization"):
                report = localizer.localize(document, records, deadline=self.config.call_deadline_s)
            localization = report.to_dict()

        metadata.update(
            record_count=len(records),
            rejected_count=len(rejected),
            localization=localization,
            timings=timing.to_dict(),
        )

        error = None
        if not records:
            chunk_errors = [o.error for o in outcomes if o.error]
            error = chunk_errors[0] if chunk_errors else "No questions found in document"

        logger.info(
            f"{name}: extracted {len(records)} record(s) from {len(chunks)} chunk(s), "
            f"{len(rejected)} rejected, {len(diagnostics)} partial failure(s)",
            extra={"record_count": len(records), "chunk_count": len(chunks)},
        )
        return ExtractionResult(
            success=bool(records),
            records=records,
            metadata=metadata,
            error=error,
            failures=diagnostics.failures,
            rejected=rejected,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Chunk processing
    # ─────────────────────────────────────────────────────────────────────────

    def _process_chunks(
        self,
        chunks: List[Chunk],
        answer_key: Optional[Document],
        diagnostics: DiagnosticsCollector,
        timing: TimingLog,
    ) -> List[_ChunkOutcome]:
        """Process chunks, returning outcomes in chunk order."""
        if self.config.max_workers > 1 and len(chunks) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="chunk") as pool:
                futures = [
                    pool.submit(self._process_chunk, chunk, answer_key, diagnostics, timing)
                    for chunk in chunks
                ]
                return [future.result() for future in futures]
        return [self._process_chunk(chunk, answer_key, diagnostics, timing) for chunk in chunks]

    def _process_chunk(
        self,
        chunk: Chunk,
        answer_key: Optional[Document],
        diagnostics: DiagnosticsCollector,
        timing: TimingLog,
    ) -> _ChunkOutcome:
        unit = f"chunk {chunk.index}"
        logger.info(
            f"Processing {unit} (pages {chunk.start_page}-{chunk.end_page})",
            extra={"chunk_index": chunk.index},
        )

        parts = [
            TextPart(build_extraction_prompt(chunk.page_count, answer_key is not None)),
            BlobPart(chunk.payload),
        ]
        if answer_key is not None:
            parts.append(BlobPart(answer_key.data))

        try:
            with timed_phase(timing, "extraction_call", unit_id=unit):
                text = self.client.call(parts, EndpointVariant.EXTRACTION, deadline=self.config.call_deadline_s)
            with timed_phase(timing, "repair", unit_id=unit):
                parsed = repair_records(text, chunk_index=chunk.index)
        except (TransportError, PayloadError) as e:
            diagnostics.add_error(
                FailureScope.CHUNK, unit, e, start_page=chunk.start_page, end_page=chunk.end_page
            )
            return _ChunkOutcome(error=f"Chunk {chunk.index} (pages {chunk.start_page}-{chunk.end_page}): {e}")

        for rejected in parsed.rejected:
            diagnostics.add(
                PartialFailure(
                    scope=FailureScope.RECORD,
                    unit=rejected.record_id,
                    message=rejected.reason,
                    error_type="RecordValidationError",
                    context={"chunk_index": chunk.index, "record_index": rejected.index},
                )
            )

        flag_records(parsed.records, chunk)
        return _ChunkOutcome(records=parsed.records, rejected=parsed.rejected)


def extract(
    document_bytes: bytes,
    answer_key_bytes: Optional[bytes] = None,
    *,
    client: GenerationClient,
    store: Optional[AssetStore],
    config: Optional[ExtractionConfig] = None,
    name: str = "document.pdf",
) -> ExtractionResult:
    """
    Extract validated question records from a question paper PDF.

    Args:
        document_bytes: Question paper PDF
        answer_key_bytes: Optional answer key PDF, sent with every chunk
        client: Generation client
        store: Asset store for located images; None skips localization
        config: Extraction settings (defaults when omitted)
        name: Display name used in logs

    Returns:
        ExtractionResult envelope.
    """
    return Extractor(client, store, config).extract(document_bytes, answer_key_bytes, name=name)


def _ensure_unique_ids(records: List[CandidateRecord]) -> None:
    """
    Make record ids unique across chunks.

    Each chunk is parsed independently, so ids such as "q1" can repeat.
    Later duplicates get the chunk index appended.
    """
    seen: Set[str] = set()
    for record in records:
        if record.local_id in seen:
            base = f"{record.local_id}_c{record.chunk_index}"
            candidate = base
            suffix = 2
            while candidate in seen:
                candidate = f"{base}_{suffix}"
                suffix += 1
            logger.debug(f"Renamed duplicate id {record.local_id} -> {candidate}")
            record.local_id = candidate
        seen.add(record.local_id)

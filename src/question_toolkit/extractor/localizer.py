"""
Module: extractor.localizer

Purpose:
    Phase 2 of image localization. For every record flagged in phase 1,
    asks a vision model for bounding boxes, crops the boxes out of
    rendered pages, uploads the crops and attaches the resulting asset
    references to the records in place.

    Flagged records are grouped by estimated page and the sorted pages are
    split into batches. Each batch makes one localization call with a PDF
    of just its pages, renders pages through its own PageRenderCache, and
    reports one ItemOutcome per requested image. A failed item falls back
    to uploading the whole page; failures never abort other items or
    batches.

Key Classes:
    - ImageLocalizer: localize(document, records) -> LocalizationReport
    - ItemOutcome / ItemResult: Per-image outcome values
    - LocalizationReport: Outcomes plus batch counts

Dependencies:
    - client.transport: LOCALIZATION calls
    - extractor.cache / extractor.cropper: Rendering, cropping, PNG encoding
    - storage.assets: Uploads
    - concurrent.futures (std): Concurrent batches

Used By:
    - extractor.pipeline: After all chunks are parsed and flagged
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from PIL import Image

from question_toolkit.client.transport import BlobPart, EndpointVariant, GenerationClient, TextPart
from question_toolkit.common.errors import PayloadError, TransportError
from question_toolkit.common.thresholds import LOCALIZATION_THRESHOLDS
from question_toolkit.core.models.assets import AssetSource, ImageAssetReference
from question_toolkit.core.models.bounds import BoundingBox
from question_toolkit.core.models.chunks import Document
from question_toolkit.core.models.records import CandidateRecord
from question_toolkit.core.schemas.validator import normalize_label
from question_toolkit.storage.assets import AssetStore

from .cache import PageRenderCache
from .chunker import extract_pages
from .config import LocalizerConfig
from .cropper import crop_box, encode_png
from .diagnostics import DiagnosticsCollector, FailureScope, PartialFailure
from .prompts import LocalizationItem, build_localization_prompt
from .repair import PayloadShape, repair
from .timing import TimingLog, timed_phase

logger = logging.getLogger(__name__)

QUESTION_TARGET = "question"
NOT_LOCATED_NOTE = "not located"


class ItemOutcome(str, Enum):
    """What happened to one requested image."""

    ATTACHED = "attached"  # crop uploaded and attached
    FALLBACK = "fallback"  # full-page render uploaded and attached
    NOT_LOCATED = "not_located"  # model returned no box
    FAILED = "failed"  # nothing attached

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ItemResult:
    """
    Outcome for one requested image.

    Attributes:
        record_id: Record the image belongs to
        target: "question" or an option label
        identifier: Asset identifier, e.g. "question_q3_option_B"
        outcome: ItemOutcome
        page: Absolute page used, if any
        message: Failure cause for FALLBACK / FAILED
    """

    record_id: str
    target: str
    identifier: str
    outcome: ItemOutcome
    page: Optional[int] = None
    message: str = ""

    @property
    def attached(self) -> bool:
        return self.outcome in (ItemOutcome.ATTACHED, ItemOutcome.FALLBACK)


@dataclass
class LocalizationReport:
    """Per-item outcomes for one localize() run."""

    results: List[ItemResult] = field(default_factory=list)
    batches: int = 0
    failed_batches: int = 0

    @property
    def attached(self) -> int:
        return sum(1 for r in self.results if r.attached)

    def count(self, outcome: ItemOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    def to_dict(self) -> Dict[str, Any]:
        counts = Counter(r.outcome.value for r in self.results)
        return {
            "requested": len(self.results),
            "attached": self.attached,
            **{outcome.value: counts.get(outcome.value, 0) for outcome in ItemOutcome},
            "batches": self.batches,
            "failed_batches": self.failed_batches,
        }


def asset_identifier(record_id: str, target: str) -> str:
    """Stable store identifier for a question or option image."""
    if target == QUESTION_TARGET:
        return f"question_{record_id}"
    return f"question_{record_id}_option_{target}"


class ImageLocalizer:
    """
    Locates, crops and uploads images for flagged records.

    Args:
        client: Generation client used for LOCALIZATION calls
        store: Asset store receiving PNG uploads
        config: Batching, rendering and fallback settings
        diagnostics: Collector for partial failures (a private one if omitted)
        timing: Timing log for batch phases (a private one if omitted)

    Example:
        >>> localizer = ImageLocalizer(client, LocalAssetStore(root), LocalizerConfig())
        >>> report = localizer.localize(document, records)
        >>> report.to_dict()["attached"]
        19
    """

    def __init__(
        self,
        client: GenerationClient,
        store: AssetStore,
        config: Optional[LocalizerConfig] = None,
        *,
        diagnostics: Optional[DiagnosticsCollector] = None,
        timing: Optional[TimingLog] = None,
    ):
        self.client = client
        self.store = store
        self.config = config or LocalizerConfig()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticsCollector()
        self.timing = timing if timing is not None else TimingLog()

    def localize(
        self,
        document: Document,
        records: Sequence[CandidateRecord],
        *,
        deadline: Optional[float] = None,
    ) -> LocalizationReport:
        """
        Attach images to every flagged record in place.

        Args:
            document: Source document the records were extracted from
            records: Records after phase-1 flagging
            deadline: Per-call budget passed to the client

        Returns:
            LocalizationReport with one ItemResult per flagged image.
        """
        batches = self.plan_batches(records)
        report = LocalizationReport(batches=len(batches))
        if not batches:
            logger.info(f"{document.name}: no images flagged, skipping localization")
            return report

        logger.info(
            f"{document.name}: localizing images for "
            f"{sum(len(group) for _, group in batches)} record(s) in {len(batches)} batch(es)",
            extra={"batch_count": len(batches)},
        )

        if self.config.max_workers > 1 and len(batches) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="localize") as pool:
                futures = [
                    pool.submit(self._process_batch, document, index, pages, group, deadline)
                    for index, (pages, group) in enumerate(batches)
                ]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [
                self._process_batch(document, index, pages, group, deadline)
                for index, (pages, group) in enumerate(batches)
            ]

        for results, batch_failed in outcomes:
            report.results.extend(results)
            report.failed_batches += int(batch_failed)

        summary = report.to_dict()
        logger.info(
            f"{document.name}: attached {summary['attached']}/{summary['requested']} image(s) "
            f"({summary['fallback']} full-page, {summary['not_located']} not located, {summary['failed']} failed)",
            extra={"localization": summary},
        )
        return report

    def plan_batches(
        self, records: Sequence[CandidateRecord]
    ) -> List[Tuple[List[int], List[CandidateRecord]]]:
        """
        Group flagged records by estimated page and split the sorted pages
        into batches of ``pages_per_batch``.

        Returns:
            (pages, records) pairs in page order.
        """
        by_page: Dict[int, List[CandidateRecord]] = defaultdict(list)
        for record in records:
            if record.image_presence.any and record.estimated_page is not None:
                by_page[record.estimated_page].append(record)

        pages = sorted(by_page)
        size = self.config.pages_per_batch
        batches = []
        for start in range(0, len(pages), size):
            batch_pages = pages[start : start + size]
            group = [record for page in batch_pages for record in by_page[page]]
            batches.append((batch_pages, group))
        return batches

    # ─────────────────────────────────────────────────────────────────────────
    # Batch processing
    # ─────────────────────────────────────────────────────────────────────────

    def _process_batch(
        self,
        document: Document,
        index: int,
        pages: List[int],
        records: List[CandidateRecord],
        deadline: Optional[float],
    ) -> Tuple[List[ItemResult], bool]:
        unit = f"batch {index}"
        boxes: Mapping[str, Any] = {}
        batch_error: Optional[str] = None

        try:
            with timed_phase(self.timing, "localization_call", unit_id=unit):
                boxes = self._request_boxes(document, pages, records, deadline)
        except (TransportError, PayloadError) as e:
            batch_error = f"localization call failed: {e}"
            self.diagnostics.add_error(FailureScope.BATCH, unit, e, pages=pages)
        except ValueError as e:
            # page subset could not be built
            batch_error = f"localization batch could not be prepared: {e}"
            self.diagnostics.add_error(FailureScope.BATCH, unit, e, pages=pages)

        results: List[ItemResult] = []
        with timed_phase(self.timing, "crop_upload", unit_id=unit):
            with PageRenderCache(document, self.config.dpi) as cache:
                for record in records:
                    entry = _lookup_entry(boxes, record.local_id)
                    for target in _requested_targets(record):
                        results.append(
                            self._process_item(record, target, entry, pages, cache, batch_error)
                        )
        return results, batch_error is not None

    def _request_boxes(
        self,
        document: Document,
        pages: List[int],
        records: List[CandidateRecord],
        deadline: Optional[float],
    ) -> Mapping[str, Any]:
        items = [
            LocalizationItem(
                record_id=record.local_id,
                page=pages.index(record.estimated_page) + 1,
                question=record.image_presence.question,
                option_labels=[t for t in _requested_targets(record) if t != QUESTION_TARGET],
                excerpt=record.text[: LOCALIZATION_THRESHOLDS.text_excerpt_chars],
            )
            for record in records
        ]
        payload = extract_pages(document, pages)
        prompt = build_localization_prompt(len(pages), items)
        text = self.client.call(
            [TextPart(prompt), BlobPart(payload)],
            EndpointVariant.LOCALIZATION,
            deadline=deadline,
        )
        return repair(text, PayloadShape.OBJECT)

    def _process_item(
        self,
        record: CandidateRecord,
        target: str,
        entry: Optional[Mapping[str, Any]],
        pages: List[int],
        cache: PageRenderCache,
        batch_error: Optional[str],
    ) -> ItemResult:
        identifier = asset_identifier(record.local_id, target)

        if batch_error is not None:
            return self._fallback(record, target, identifier, record.estimated_page, cache, batch_error)

        raw_box = _lookup_box(entry, target)
        if raw_box is None:
            record.image_errors.append(f"{identifier}: {NOT_LOCATED_NOTE}")
            logger.debug(f"{identifier}: {NOT_LOCATED_NOTE}", extra={"question_id": record.local_id})
            return ItemResult(record.local_id, target, identifier, ItemOutcome.NOT_LOCATED)

        page = record.estimated_page
        try:
            box = resolve_box(raw_box, pages, default_page=record.estimated_page)
            page = box.page
            image = cache.get_or_render(box.page)
            crop = crop_box(
                image,
                box,
                min_size_px=self.config.min_crop_px,
                padding_ratio=self.config.crop_padding_ratio,
                trim=self.config.trim_whitespace,
            )
            ref = self._upload(crop, identifier, "crop")
        except Exception as e:
            # store backends may raise their own error types
            return self._fallback(record, target, identifier, page, cache, f"crop failed: {e}")

        _attach(record, target, ref)
        return ItemResult(record.local_id, target, identifier, ItemOutcome.ATTACHED, page=page)

    def _fallback(
        self,
        record: CandidateRecord,
        target: str,
        identifier: str,
        page: Optional[int],
        cache: PageRenderCache,
        reason: str,
    ) -> ItemResult:
        """Upload the whole page instead of a crop; record the failure if that fails too."""
        if self.config.full_page_fallback and page is not None:
            try:
                ref = self._upload(cache.get_or_render(page), identifier, "full_page")
            except Exception as e:
                reason = f"{reason}; full-page fallback failed: {e}"
            else:
                _attach(record, target, ref)
                logger.warning(
                    f"{identifier}: attached full page {page} ({reason})",
                    extra={"question_id": record.local_id, "page": page},
                )
                return ItemResult(
                    record.local_id, target, identifier, ItemOutcome.FALLBACK, page=page, message=reason
                )

        record.image_errors.append(f"{identifier}: {reason}")
        self.diagnostics.add(
            _image_failure(identifier, reason, page=page, question_id=record.local_id)
        )
        return ItemResult(record.local_id, target, identifier, ItemOutcome.FAILED, page=page, message=reason)

    def _upload(self, image: Image.Image, identifier: str, source: AssetSource) -> ImageAssetReference:
        data = encode_png(image)
        url = self.store.upload(data, identifier, self.config.asset_folder)
        return ImageAssetReference.now(identifier, url, source=source)


# ─────────────────────────────────────────────────────────────────────────────
# Response helpers
# ─────────────────────────────────────────────────────────────────────────────

def resolve_box(raw: Mapping[str, Any], pages: Sequence[int], default_page: int) -> BoundingBox:
    """
    Parse one box from a localization response.

    The response uses batch-local pages; they are mapped back to absolute
    pages through ``pages``. A missing or out-of-range page falls back to
    ``default_page``.

    Raises:
        ValueError: If the box is unusable.
    """
    if not isinstance(raw, Mapping):
        raise ValueError(f"Bounding box must be an object, got {type(raw).__name__}")
    data = dict(raw)
    if isinstance(data.get("box"), Mapping):
        nested = dict(data.pop("box"))
        nested.setdefault("page", data.get("page"))
        data = nested

    local = data.get("page")
    page = default_page
    if isinstance(local, (int, float)) and not isinstance(local, bool) and float(local).is_integer():
        if 1 <= int(local) <= len(pages):
            page = pages[int(local) - 1]
    data["page"] = page
    return BoundingBox.from_untrusted(data, default_page=page)


def _requested_targets(record: CandidateRecord) -> List[str]:
    targets = [QUESTION_TARGET] if record.image_presence.question else []
    for option, flag in zip(record.options, record.image_presence.options):
        if flag:
            targets.append(option.label)
    return targets


def _lookup_entry(boxes: Mapping[str, Any], record_id: str) -> Optional[Mapping[str, Any]]:
    entry = boxes.get(record_id)
    if entry is None:
        wanted = record_id.strip().lower()
        for key, value in boxes.items():
            if str(key).strip().lower() == wanted:
                entry = value
                break
    return entry if isinstance(entry, Mapping) else None


def _lookup_box(entry: Optional[Mapping[str, Any]], target: str) -> Optional[Mapping[str, Any]]:
    if entry is None:
        return None
    if target == QUESTION_TARGET:
        box = entry.get("question")
        if box is None and "options" not in entry and any(k in entry for k in ("x", "x1", "box_2d", "box")):
            box = entry
    else:
        box = None
        options = entry.get("options")
        wanted = normalize_label(target)
        if isinstance(options, Mapping):
            for label, value in options.items():
                if normalize_label(label) == wanted:
                    box = value
                    break
        elif isinstance(options, list):
            for value in options:
                if isinstance(value, Mapping) and normalize_label(value.get("label", "")) == wanted:
                    box = value
                    break
    if not isinstance(box, Mapping) or box.get("present") is False:
        return None
    return box


def _attach(record: CandidateRecord, target: str, ref: ImageAssetReference) -> None:
    if target == QUESTION_TARGET:
        record.question_image = ref
        return
    option = record.option(target)
    if option is None:
        raise KeyError(f"{record.local_id} has no option {target!r}")
    option.image = ref


def _image_failure(identifier: str, reason: str, **context: Any) -> PartialFailure:
    return PartialFailure(scope=FailureScope.IMAGE, unit=identifier, message=reason, context=context)

"""
Module: extractor.flagging

Purpose:
    Phase 1 of image localization. Runs without network access right after
    a chunk's records are parsed: reads which parts of each record the
    model claims contain an image, and estimates the absolute page each
    record appears on.

Key Functions:
    - flag_records(): Set image_presence and estimated_page in place
    - read_presence(): Image flags from a wire dictionary

Dependencies:
    - core.models: CandidateRecord, Chunk, ImagePresence

Used By:
    - extractor.pipeline: After each chunk is parsed
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

from question_toolkit.core.models.chunks import Chunk
from question_toolkit.core.models.records import CandidateRecord, ImagePresence

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "present"})


def flag_records(records: Sequence[CandidateRecord], chunk: Chunk) -> List[CandidateRecord]:
    """
    Flag image presence and estimate pages for one chunk's records.

    The model reports a chunk-local page. When it lies within the chunk it
    is mapped to the absolute page; otherwise the page is interpolated
    from the record's position in the chunk: ``local = 1 + (i * pages) // n``.

    Args:
        records: Records parsed from ``chunk``, in response order
        chunk: The chunk they came from

    Returns:
        The records that claim at least one image.
    """
    flagged: List[CandidateRecord] = []
    total = len(records)
    interpolated = 0

    for index, record in enumerate(records):
        record.image_presence = read_presence(record.raw, len(record.options))

        local = _reported_page(record.raw)
        if local is None or not 1 <= local <= chunk.page_count:
            local = 1 + (index * chunk.page_count) // total
            interpolated += 1
        record.estimated_page = chunk.absolute_page(local)

        if record.image_presence.any:
            flagged.append(record)
            logger.debug(
                f"{record.local_id}: {record.image_presence.flag_count} image(s) on page {record.estimated_page}",
                extra={"chunk_index": chunk.index, "question_id": record.local_id, "page": record.estimated_page},
            )

    if interpolated:
        logger.debug(
            f"Chunk {chunk.index}: interpolated pages for {interpolated}/{total} record(s)",
            extra={"chunk_index": chunk.index},
        )
    return flagged


def read_presence(raw: Mapping[str, Any], option_count: int) -> ImagePresence:
    """
    Read image flags from a wire record.

    Accepts the ``images`` object ({"question": bool, "options": [bool] or
    {label: bool}}) and the legacy per-part ``diagram`` objects with a
    ``present`` field. Option flags are padded or truncated to
    ``option_count``.
    """
    images = raw.get("images")
    question = False
    option_flags: List[bool] = []

    if isinstance(images, Mapping):
        question = _truthy(images.get("question"))
        raw_options = images.get("options")
        if isinstance(raw_options, list):
            option_flags = [_truthy(flag) for flag in raw_options]
        elif isinstance(raw_options, Mapping):
            option_flags = _flags_by_label(raw, raw_options, option_count)
    else:
        question = _diagram_present(raw.get("diagram"))
        wire_options = raw.get("options")
        if isinstance(wire_options, list):
            option_flags = [
                _diagram_present(option.get("diagram")) if isinstance(option, Mapping) else False
                for option in wire_options
            ]

    option_flags = (option_flags + [False] * option_count)[:option_count]
    return ImagePresence(question=question, options=tuple(option_flags))


def _flags_by_label(raw: Mapping[str, Any], flags: Mapping[str, Any], option_count: int) -> List[bool]:
    wire_options = raw.get("options")
    labels: List[str] = []
    if isinstance(wire_options, list):
        for index, option in enumerate(wire_options):
            label = option.get("label") if isinstance(option, Mapping) else None
            labels.append(str(label) if label else chr(ord("A") + index))
    normalized = {str(key).strip().upper(): value for key, value in flags.items()}
    return [_truthy(normalized.get(label.strip().upper())) for label in labels[:option_count]]


def _diagram_present(diagram: Any) -> bool:
    if isinstance(diagram, Mapping):
        if "present" in diagram:
            return _truthy(diagram["present"])
        return diagram.get("bounding_box") is not None
    return _truthy(diagram)


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _reported_page(raw: Mapping[str, Any]) -> Optional[int]:
    value = raw.get("page")
    if value is None and isinstance(raw.get("diagram"), Mapping):
        value = raw["diagram"].get("page")
    if isinstance(value, bool) or value is None:
        return None
    try:
        page = float(value)
    except (TypeError, ValueError):
        return None
    if not page.is_integer():
        return None
    return int(page)

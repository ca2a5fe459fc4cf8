"""Batch sizing for over-generation and top-up."""

from __future__ import annotations

import math
from typing import List, Sequence

from question_toolkit.common.thresholds import GENERATION_THRESHOLDS
from question_toolkit.core.models.records import CandidateRecord


def _scaled(count: int, factor: float) -> int:
    # round() first so 15 * 1.2 does not ceil to 19 on float noise
    return math.ceil(round(count * factor, 9))


def plan_batches(
    count: int,
    batch_size: int = GENERATION_THRESHOLDS.batch_size,
    factor: float = GENERATION_THRESHOLDS.overgeneration_factor,
) -> List[int]:
    """
    Split ``ceil(count * factor)`` into batches of at most ``batch_size``.

    A target smaller than one batch still requests a full batch.

    Example:
        >>> plan_batches(15)
        [10, 8]
        >>> plan_batches(3)
        [10]
    """
    if count < 1:
        raise ValueError(f"count must be >= 1: {count}")
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1: {batch_size}")

    target = _scaled(count, factor)
    if target <= batch_size:
        return [batch_size]

    sizes = [batch_size] * (target // batch_size)
    if target % batch_size:
        sizes.append(target % batch_size)
    return sizes


def topup_size(needed: int, factor: float = GENERATION_THRESHOLDS.topup_factor) -> int:
    """Questions to request when ``needed`` are still missing."""
    return _scaled(needed, factor) if needed > 0 else 0


def avoid_hint(
    records: Sequence[CandidateRecord],
    chars: int = GENERATION_THRESHOLDS.avoid_hint_chars,
    items: int = GENERATION_THRESHOLDS.avoid_hint_items,
) -> str:
    """Prompt line quoting earlier questions the model must not repeat."""
    if not records:
        return ""
    quoted = "; ".join(record.text[:chars] for record in records[:items])
    return f"IMPORTANT: Do NOT repeat questions similar to: {quoted}"

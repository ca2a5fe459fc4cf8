"""Centralized threshold and magic number configuration.

This module contains the tunable constants used throughout extraction,
localization and generation. Having these in one place makes tuning
easier; configuration dataclasses take their defaults from here.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ImageProcessingThresholds:
    """Thresholds for rasterization, cropping and trimming."""

    render_dpi: int = 220  # PDF_RENDER_DPI default
    min_crop_px: int = 10  # Crops never narrower/shorter than this
    crop_padding_ratio: float = 0.01  # Fraction of page added around a box

    # Whitespace trimming
    trim_padding: int = 4  # Pixels of padding to keep after trim
    trim_percentile: int = 98  # Percentile for white detection
    min_white_threshold: int = 240  # Pixel value considered "white"
    dynamic_trim_divisor: int = 150  # Divisor for dynamic padding


@dataclass
class RepairThresholds:
    """Thresholds for response repair diagnostics."""

    context_chars: int = 40  # Chars either side of a parse failure to report
    preview_chars: int = 500  # Raw response preview length in logs


@dataclass
class LocalizationThresholds:
    """Thresholds for phase-2 image localization."""

    pages_per_batch: int = 5
    text_excerpt_chars: int = 200  # Question text sent with each requested item


@dataclass
class GenerationThresholds:
    """Thresholds for batch generation and deduplication."""

    batch_size: int = 10
    overgeneration_factor: float = 1.2
    topup_factor: float = 1.5
    max_extra_batches: int = 2
    similarity_threshold: float = 0.8  # Jaccard; pairs above this collapse
    min_token_length: int = 3  # Words shorter than this are ignored
    avoid_hint_chars: int = 50  # Prefix of earlier items quoted in prompts
    avoid_hint_items: int = 20  # Max earlier items quoted in prompts
    easy_max: int = 30  # difficulty <= easy_max is "Easy"
    hard_min: int = 70  # difficulty >= hard_min is "Hard"


# Global instances for easy import
IMAGE_THRESHOLDS = ImageProcessingThresholds()
REPAIR_THRESHOLDS = RepairThresholds()
LOCALIZATION_THRESHOLDS = LocalizationThresholds()
GENERATION_THRESHOLDS = GenerationThresholds()

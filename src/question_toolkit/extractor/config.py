"""
Module: extractor.config

Purpose:
    Configuration dataclasses for the extraction pipeline. Provides
    immutable settings for chunking, rendering, localization batching and
    asset upload.

Key Classes:
    - LocalizerConfig: Settings for phase-2 image localization
    - ExtractionConfig: Main configuration for extraction

Dependencies:
    - dataclasses: For frozen dataclass support
    - common.thresholds: Default values

Used By:
    - extractor.pipeline: Uses ExtractionConfig for pipeline settings
    - extractor.localizer: Uses LocalizerConfig for batching and cropping
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from question_toolkit.client.config import env_int
from question_toolkit.common.errors import ConfigurationError
from question_toolkit.common.thresholds import IMAGE_THRESHOLDS, LOCALIZATION_THRESHOLDS

DEFAULT_ASSET_FOLDER = "cbt-diagrams"


@dataclass(frozen=True)
class LocalizerConfig:
    """
    Configuration for phase-2 image localization.

    Attributes:
        pages_per_batch: Distinct pages per localization call (default 5)
        dpi: Rasterization DPI for crops (default 220)
        min_crop_px: Minimum crop width/height in pixels (default 10)
        crop_padding_ratio: Margin added around each box, as a page fraction
        trim_whitespace: Trim white margins from crops (default True)
        full_page_fallback: Upload the whole page when a crop fails (default True)
        asset_folder: Store folder for uploads (default "cbt-diagrams")
        max_workers: Batches processed concurrently (default 1)
    """

    pages_per_batch: int = LOCALIZATION_THRESHOLDS.pages_per_batch
    dpi: int = IMAGE_THRESHOLDS.render_dpi
    min_crop_px: int = IMAGE_THRESHOLDS.min_crop_px
    crop_padding_ratio: float = IMAGE_THRESHOLDS.crop_padding_ratio
    trim_whitespace: bool = True
    full_page_fallback: bool = True
    asset_folder: str = DEFAULT_ASSET_FOLDER
    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.pages_per_batch < 1:
            raise ConfigurationError(f"pages_per_batch must be >= 1: {self.pages_per_batch}")
        if not 36 <= self.dpi <= 600:
            raise ConfigurationError(f"dpi must be within 36-600: {self.dpi}")
        if self.min_crop_px < 1:
            raise ConfigurationError(f"min_crop_px must be >= 1: {self.min_crop_px}")
        if not 0.0 <= self.crop_padding_ratio < 0.5:
            raise ConfigurationError(f"crop_padding_ratio must be within [0, 0.5): {self.crop_padding_ratio}")
        if not self.asset_folder:
            raise ConfigurationError("asset_folder must not be empty")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1: {self.max_workers}")


@dataclass(frozen=True)
class ExtractionConfig:
    """
    Configuration for the extraction pipeline.

    Attributes:
        pages_per_chunk: Pages sent per extraction call (default 5)
        max_workers: Chunks processed concurrently (default 1). Results are
            merged in chunk order either way.
        localize_images: Run phase-2 localization (default True)
        call_deadline_s: Optional per-call budget passed to the client
        localizer: Settings for phase-2 localization
    """

    pages_per_chunk: int = 5
    max_workers: int = 1
    localize_images: bool = True
    call_deadline_s: Optional[float] = None
    localizer: LocalizerConfig = field(default_factory=LocalizerConfig)

    def __post_init__(self) -> None:
        if isinstance(self.pages_per_chunk, bool) or not isinstance(self.pages_per_chunk, int):
            raise ConfigurationError(f"pages_per_chunk must be an integer: {self.pages_per_chunk!r}")
        if self.pages_per_chunk < 1:
            raise ConfigurationError(f"pages_per_chunk must be >= 1: {self.pages_per_chunk}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1: {self.max_workers}")
        if self.call_deadline_s is not None and self.call_deadline_s <= 0:
            raise ConfigurationError(f"call_deadline_s must be positive: {self.call_deadline_s}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> ExtractionConfig:
        """Read GEMINI_PAGES_PER_CHUNK, PDF_RENDER_DPI and ASSET_FOLDER."""
        env = os.environ if env is None else env
        localizer = LocalizerConfig(
            dpi=env_int(env, "PDF_RENDER_DPI", IMAGE_THRESHOLDS.render_dpi),
            asset_folder=env.get("ASSET_FOLDER") or DEFAULT_ASSET_FOLDER,
        )
        return cls(
            pages_per_chunk=env_int(env, "GEMINI_PAGES_PER_CHUNK", 5),
            localizer=localizer,
        )

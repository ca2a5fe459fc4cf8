"""
Module: extractor.cropper

Purpose:
    Crop and encode helpers for located images. Converts a normalized
    bounding box into a pixel crop of a rendered page, trims white
    margins, and encodes PNG bytes for upload.

Key Functions:
    - crop_box(): Crop a BoundingBox region from a rendered page
    - encode_png(): Encode an image as PNG bytes
    - trim_whitespace(): Trim white margins around content

Dependencies:
    - PIL.Image: Cropping and PNG encoding
    - numpy: Whitespace detection

Used By:
    - extractor.localizer: Crops and full-page fallbacks
"""

from __future__ import annotations

import io
import logging
from typing import Tuple

import numpy as np
from PIL import Image

from question_toolkit.common.bbox_utils import normalized_to_pixels
from question_toolkit.common.thresholds import IMAGE_THRESHOLDS
from question_toolkit.core.models.bounds import BoundingBox

logger = logging.getLogger(__name__)


def crop_box(
    page_image: Image.Image,
    box: BoundingBox,
    *,
    min_size_px: int = IMAGE_THRESHOLDS.min_crop_px,
    padding_ratio: float = IMAGE_THRESHOLDS.crop_padding_ratio,
    trim: bool = True,
) -> Image.Image:
    """
    Crop a normalized box out of a rendered page.

    Args:
        page_image: Full-page render of ``box.page``.
        box: Clamped normalized box.
        min_size_px: Minimum crop width and height.
        padding_ratio: Margin added on each side, as a page fraction.
        trim: Trim white margins from the crop.

    Returns:
        Cropped image, never smaller than ``min_size_px`` in either
        direction (unless the page itself is smaller).

    Example:
        >>> crop = crop_box(page, BoundingBox(1, 0.1, 0.2, 0.5, 0.25), trim=False)
    """
    rect = normalized_to_pixels(
        box.as_tuple(),
        page_image.size,
        padding_ratio=padding_ratio,
        min_size_px=min_size_px,
    )
    cropped = page_image.crop(rect)
    if trim:
        cropped, _ = trim_whitespace(cropped, min_size_px=min_size_px)
    return cropped


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as optimized PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def trim_whitespace(
    image: Image.Image,
    *,
    padding: int = IMAGE_THRESHOLDS.trim_padding,
    min_size_px: int = IMAGE_THRESHOLDS.min_crop_px,
) -> Tuple[Image.Image, Tuple[int, int]]:
    """
    Trim whitespace margins from an image.

    Detects content by finding non-white pixels and crops to
    the content bounds with specified padding.

    Args:
        image: RGB or grayscale PIL Image.
        padding: Pixels of padding to preserve around content.
        min_size_px: The trim is skipped if it would leave less than this.

    Returns:
        Tuple of (cropped_image, (left_offset, top_offset)).
    """
    arr = np.asarray(image.convert("L"))
    if arr.size == 0:
        return image, (0, 0)

    # Calculate threshold for "white" detection
    thr = max(
        IMAGE_THRESHOLDS.min_white_threshold,
        int(np.percentile(arr, IMAGE_THRESHOLDS.trim_percentile)),
    )
    mask = arr < thr

    if not mask.any():
        return image, (0, 0)

    ys, xs = np.where(mask)
    y0, y1 = int(ys.min()), int(ys.max())
    x0, x1 = int(xs.min()), int(xs.max())

    # Dynamic padding based on image size
    dyn = max(padding, image.width // IMAGE_THRESHOLDS.dynamic_trim_divisor)

    left = max(0, x0 - dyn)
    right = min(image.width, x1 + 1 + dyn)
    top = max(0, y0 - dyn)
    bottom = min(image.height, y1 + 1 + dyn)

    if right - left < min_size_px or bottom - top < min_size_px:
        return image, (0, 0)

    return image.crop((left, top, right, bottom)), (left, top)

"""Bounding box conversion utilities for rendered page images.

Provides shared functions for converting normalized bounding boxes
(fractions of the page, origin top-left) to pixel rectangles on a
rasterized page, accounting for padding and minimum crop size.
"""

from __future__ import annotations

import math
from typing import Tuple


def normalized_to_pixels(
    box: Tuple[float, float, float, float],
    image_size: Tuple[int, int],
    *,
    padding_ratio: float = 0.0,
    min_size_px: int = 1,
) -> Tuple[int, int, int, int]:
    """Convert a normalized (x, y, width, height) box to a pixel crop rectangle.

    Padding is added on every side as a fraction of the page dimension,
    then the rectangle is clamped to the image. If the result is smaller
    than ``min_size_px`` in either direction it is grown (and shifted back
    inside the image when it would overflow).

    Args:
        box: (x, y, width, height), each in [0, 1].
        image_size: (width, height) of the rendered page in pixels.
        padding_ratio: Extra margin as a fraction of page width/height.
        min_size_px: Minimum crop width and height in pixels.

    Returns:
        (left, top, right, bottom) suitable for ``PIL.Image.crop``,
        guaranteed right > left and bottom > top.

    Example:
        >>> normalized_to_pixels((0.1, 0.2, 0.5, 0.25), (1000, 2000))
        (100, 400, 600, 900)
    """
    x, y, w, h = box
    img_w, img_h = image_size

    left = math.floor((x - padding_ratio) * img_w)
    top = math.floor((y - padding_ratio) * img_h)
    right = math.ceil((x + w + padding_ratio) * img_w)
    bottom = math.ceil((y + h + padding_ratio) * img_h)

    left, right = _fit_span(left, right, img_w, min_size_px)
    top, bottom = _fit_span(top, bottom, img_h, min_size_px)
    return left, top, right, bottom


def _fit_span(start: int, end: int, limit: int, min_size: int) -> Tuple[int, int]:
    """Clamp [start, end) into [0, limit) keeping at least min_size pixels."""
    start = max(0, min(start, limit))
    end = max(0, min(end, limit))
    min_size = max(1, min(min_size, limit))

    if end - start < min_size:
        end = start + min_size
        if end > limit:
            end = limit
            start = limit - min_size
    return start, end

"""
Module: bounds

Purpose:
    Provides the BoundingBox dataclass - a normalized rectangle on one
    page describing where an embedded image sits. Coordinates come from
    an untrusted model, so construction from raw data clamps rather than
    rejects.

Key Functions:
    - BoundingBox.clamped(...): Build a box, clamping into the unit square
    - BoundingBox.from_untrusted(data, default_page): Parse model output
    - BoundingBox.to_dict(): Serialize for JSON

Dependencies:
    - dataclasses (std)
    - math (std)

Used By:
    - extractor.localizer: Parses bounding-box responses
    - extractor.cropper: Converts boxes to pixel crops
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Normalized image region on a single page.

    All coordinates are fractions of the page, origin top-left.

    Attributes:
        page: 1-indexed absolute page number in the source document
        x: Left edge in [0, 1]
        y: Top edge in [0, 1]
        width: Width in [0, 1]
        height: Height in [0, 1]

    Invariants:
        - page >= 1
        - 0 <= x, y, width, height <= 1
        - x + width <= 1 and y + height <= 1

    Example:
        >>> box = BoundingBox.clamped(page=2, x=0.8, y=0.5, width=0.4, height=0.2)
        >>> box.width
        0.2
    """

    page: int
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        """Validate box on construction."""
        if self.page < 1:
            raise ValueError(f"page must be >= 1: {self.page}")
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]: {value}")
        if self.x + self.width > 1.0:
            raise ValueError(f"x + width exceeds page: {self.x} + {self.width}")
        if self.y + self.height > 1.0:
            raise ValueError(f"y + height exceeds page: {self.y} + {self.height}")

    # ─────────────────────────────────────────────────────────────────────────
    # Factory Methods
    # ─────────────────────────────────────────────────────────────────────────

    @classmethod
    def clamped(cls, page: int, x: float, y: float, width: float, height: float) -> BoundingBox:
        """
        Build a box, clamping every coordinate into the unit square.

        Width and height are trimmed so the box never extends past the
        right or bottom edge.
        """
        x = _clamp_unit(x)
        y = _clamp_unit(y)
        width = _fit_extent(x, _clamp_unit(width))
        height = _fit_extent(y, _clamp_unit(height))
        return cls(page=max(1, int(page)), x=x, y=y, width=width, height=height)

    @classmethod
    def from_untrusted(cls, data: Mapping[str, Any], default_page: int) -> BoundingBox:
        """
        Parse a bounding box from model output.

        Accepted shapes:
            - {"x", "y", "width", "height"}
            - {"x1", "y1", "x2", "y2"}
            - {"box_2d": [ymin, xmin, ymax, xmax]} (0-1000 scale)

        Values on a 0-100 (percent) or 0-1000 scale are rescaled to [0, 1].
        The page defaults to ``default_page`` when absent or not an integer.

        Raises:
            ValueError: If coordinates are missing, non-numeric, or the
                clamped box has zero area.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Bounding box must be an object, got {type(data).__name__}")

        if "box" in data and isinstance(data["box"], Mapping):
            nested = dict(data["box"])
            nested.setdefault("page", data.get("page"))
            data = nested

        x, y, width, height = _read_coordinates(data)
        x, y, width, height = _rescale((x, y, width, height))

        page = _read_page(data.get("page"), default_page)
        box = cls.clamped(page, x, y, width, height)
        if box.width <= 0.0 or box.height <= 0.0:
            raise ValueError(f"Bounding box has zero area after clamping: {dict(data)}")
        return box

    # ─────────────────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def area(self) -> float:
        """Fraction of the page covered by this box."""
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return (x, y, width, height)."""
        return (self.x, self.y, self.width, self.height)

    # ─────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BoundingBox:
        return cls(
            page=data["page"],
            x=data["x"],
            y=data["y"],
            width=data["width"],
            height=data["height"],
        )


def _clamp_unit(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, float(value)))


def _fit_extent(origin: float, extent: float) -> float:
    """Trim extent so origin + extent <= 1 holds in floating point."""
    extent = min(extent, 1.0 - origin)
    while extent > 0.0 and origin + extent > 1.0:
        extent = math.nextafter(extent, 0.0)
    return max(0.0, extent)


def _read_coordinates(data: Mapping[str, Any]) -> Tuple[float, float, float, float]:
    try:
        if "box_2d" in data:
            ymin, xmin, ymax, xmax = (float(v) for v in data["box_2d"])
            # box_2d is always on the 0-1000 scale
            return xmin / 1000.0, ymin / 1000.0, (xmax - xmin) / 1000.0, (ymax - ymin) / 1000.0
        if all(k in data for k in ("x1", "y1", "x2", "y2")):
            x1, y1 = float(data["x1"]), float(data["y1"])
            x2, y2 = float(data["x2"]), float(data["y2"])
            return min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1)
        return (
            float(data["x"]),
            float(data["y"]),
            float(data["width"]),
            float(data["height"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Bounding box coordinates missing or invalid: {dict(data)}") from e


def _rescale(coords: Tuple[float, float, float, float]) -> Tuple[float, float, float, float]:
    """Rescale percent (0-100) or per-mille (0-1000) coordinates to fractions."""
    largest = max(abs(c) for c in coords)
    if largest <= 1.0:
        return coords
    divisor = 100.0 if largest <= 100.0 else 1000.0
    return tuple(c / divisor for c in coords)  # type: ignore[return-value]


def _read_page(value: Any, default_page: int) -> int:
    if isinstance(value, bool):
        return default_page
    if isinstance(value, (int, float)) and value >= 1:
        return int(value)
    return default_page

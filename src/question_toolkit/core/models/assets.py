"""
Module: assets

Purpose:
    Provides the ImageAssetReference dataclass - a pointer to an image
    uploaded to the external asset store and attached to a question or
    one of its options.

Dependencies:
    - dataclasses (std)
    - datetime (std)

Used By:
    - core.models.records: Question and option image fields
    - extractor.localizer: Creates references after upload
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

AssetSource = Literal["crop", "full_page"]


@dataclass(frozen=True, slots=True)
class ImageAssetReference:
    """
    Reference to an uploaded image asset.

    Attributes:
        identifier: Stable store key, e.g. "question_q3" or "question_q3_option_B"
        url: Retrievable URL returned by the store
        uploaded_at: UTC timestamp of the upload
        source: "crop" for a bounding-box crop, "full_page" for the
            whole-page fallback render
    """

    identifier: str
    url: str
    uploaded_at: datetime
    source: AssetSource = "crop"

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("identifier must not be empty")
        if not self.url:
            raise ValueError("url must not be empty")
        if self.source not in ("crop", "full_page"):
            raise ValueError(f"Invalid asset source: {self.source}")

    @classmethod
    def now(cls, identifier: str, url: str, source: AssetSource = "crop") -> ImageAssetReference:
        """Create a reference stamped with the current UTC time."""
        return cls(
            identifier=identifier,
            url=url,
            uploaded_at=datetime.now(timezone.utc),
            source=source,
        )

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "url": self.url,
            "uploaded_at": self.uploaded_at.isoformat(),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ImageAssetReference:
        return cls(
            identifier=data["identifier"],
            url=data["url"],
            uploaded_at=datetime.fromisoformat(data["uploaded_at"]),
            source=data.get("source", "crop"),
        )

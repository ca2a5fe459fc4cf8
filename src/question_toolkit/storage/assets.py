"""
Module: storage.assets

Purpose:
    Binary asset store interface and a filesystem implementation. The
    localizer uploads cropped images through this interface and attaches
    the returned URL to records.

Key Classes:
    - AssetStore: Protocol - upload(data, identifier, folder) -> url
    - LocalAssetStore: Writes PNGs under a root directory
    - AssetUploadError: Raised when an upload fails

Dependencies:
    - storage.file_locking: Atomic locked writes (portalocker)

Used By:
    - extractor.localizer: Crop and full-page uploads
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from question_toolkit.common.errors import QuestionToolkitError

from .file_locking import atomic_write_bytes

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class AssetUploadError(QuestionToolkitError):
    """An asset could not be stored."""


@runtime_checkable
class AssetStore(Protocol):
    """
    Binary asset store: bytes in, retrievable URL out.

    Uploads are idempotent: uploading again under the same identifier and
    folder overwrites the earlier asset.
    """

    def upload(self, data: bytes, identifier: str, folder: str) -> str:
        ...


def safe_name(value: str) -> str:
    """Reduce an identifier to a filesystem-safe name."""
    cleaned = _UNSAFE_CHARS.sub("_", value).strip("._")
    if not cleaned:
        raise ValueError(f"Identifier has no usable characters: {value!r}")
    return cleaned


class LocalAssetStore:
    """
    Asset store backed by a local directory.

    Files are written to ``<root>/<folder>/<identifier>.png``. The returned
    URL is ``<base_url>/<folder>/<identifier>.png`` when a base URL is
    configured, otherwise a ``file://`` URL.

    Example:
        >>> store = LocalAssetStore(Path("/srv/assets"), base_url="https://cdn.example.com")
        >>> store.upload(png, "question_q1", "cbt-diagrams")
        'https://cdn.example.com/cbt-diagrams/question_q1.png'
    """

    def __init__(self, root: Path, base_url: Optional[str] = None):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/") if base_url else None

    def path_for(self, identifier: str, folder: str) -> Path:
        parts = [safe_name(part) for part in folder.split("/") if part.strip()]
        return self.root.joinpath(*parts, f"{safe_name(identifier)}.png")

    def upload(self, data: bytes, identifier: str, folder: str) -> str:
        """
        Store ``data`` and return its URL.

        Raises:
            AssetUploadError: If the data is empty or the write fails.
        """
        if not data:
            raise AssetUploadError(f"Refusing to store empty asset {identifier!r}")
        try:
            path = self.path_for(identifier, folder)
        except ValueError as e:
            raise AssetUploadError(str(e)) from e

        try:
            atomic_write_bytes(path, bytes(data))
        except OSError as e:
            raise AssetUploadError(f"Failed to store {identifier!r} in {folder!r}: {e}") from e

        if self.base_url:
            relative = path.relative_to(self.root).as_posix()
            url = f"{self.base_url}/{relative}"
        else:
            url = path.resolve().as_uri()
        logger.debug(f"Stored asset {identifier} ({len(data)} bytes)", extra={"identifier": identifier})
        return url

"""Binary asset storage for located images."""

from .assets import AssetStore, AssetUploadError, LocalAssetStore

__all__ = ["AssetStore", "AssetUploadError", "LocalAssetStore"]

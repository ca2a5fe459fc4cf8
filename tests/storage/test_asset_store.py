"""
Unit Tests for Asset Storage

Tests for LocalAssetStore and the locked atomic write it relies on.
"""

from pathlib import Path

import pytest

from question_toolkit.storage.assets import AssetStore, AssetUploadError, LocalAssetStore, safe_name
from question_toolkit.storage.file_locking import atomic_write_bytes


class TestLocalAssetStore:
    """Tests for LocalAssetStore."""

    def test_upload_when_base_url_then_returns_public_url(self, tmp_path: Path):
        store = LocalAssetStore(tmp_path, base_url="https://cdn.example.com/")

        url = store.upload(b"\x89PNG data", "question_q1", "cbt-diagrams")

        assert url == "https://cdn.example.com/cbt-diagrams/question_q1.png"
        assert (tmp_path / "cbt-diagrams" / "question_q1.png").read_bytes() == b"\x89PNG data"

    def test_upload_when_no_base_url_then_returns_file_uri(self, tmp_path: Path):
        store = LocalAssetStore(tmp_path)

        url = store.upload(b"data", "question_q2_option_B", "assets/nested")

        assert url.startswith("file://")
        assert url.endswith("assets/nested/question_q2_option_B.png")

    def test_upload_when_same_identifier_twice_then_overwritten(self, tmp_path: Path):
        store = LocalAssetStore(tmp_path)

        store.upload(b"first", "question_q1", "f")
        store.upload(b"second", "question_q1", "f")

        assert store.path_for("question_q1", "f").read_bytes() == b"second"

    def test_upload_when_data_empty_then_raises(self, tmp_path: Path):
        with pytest.raises(AssetUploadError, match="empty"):
            LocalAssetStore(tmp_path).upload(b"", "question_q1", "f")

    def test_upload_when_identifier_unusable_then_raises(self, tmp_path: Path):
        with pytest.raises(AssetUploadError):
            LocalAssetStore(tmp_path).upload(b"x", "../..", "f")

    def test_local_store_when_checked_then_satisfies_protocol(self, tmp_path: Path):
        assert isinstance(LocalAssetStore(tmp_path), AssetStore)


class TestSafeName:
    """Tests for safe_name()."""

    def test_safe_name_when_path_characters_then_replaced(self):
        assert safe_name("q 1/../x") == "q_1_.._x"


class TestAtomicWrite:
    """Tests for atomic_write_bytes()."""

    def test_atomic_write_when_parent_missing_then_created(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "file.bin"

        atomic_write_bytes(target, b"payload")

        assert target.read_bytes() == b"payload"
        leftovers = [p.name for p in target.parent.iterdir() if p.name not in ("file.bin", "file.bin.lock")]
        assert leftovers == []

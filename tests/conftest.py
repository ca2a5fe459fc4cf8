import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import fitz
import pytest

# Add src to sys.path so we can import question_toolkit
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from question_toolkit.client.transport import EndpointVariant, TextPart  # noqa: E402


Responder = Callable[[Sequence, EndpointVariant, int], str]


class FakeGenerationClient:
    """
    Stand-in for GenerationClient.

    ``responses`` is either a list consumed in call order (an Exception
    instance is raised instead of returned) or a callable
    ``(parts, variant, call_number) -> str`` where call_number starts at 1.
    """

    def __init__(self, responses: Union[List, Responder]):
        self._responses = responses
        self._lock = threading.Lock()
        self.calls: List[Tuple[EndpointVariant, Sequence]] = []

    def model_for(self, variant: EndpointVariant) -> str:
        return f"fake-{variant.value}-model"

    def call(self, parts, variant, *, deadline=None) -> str:
        with self._lock:
            self.calls.append((variant, list(parts)))
            number = len(self.calls)
        if callable(self._responses):
            result = self._responses(parts, variant, number)
        else:
            result = self._responses[number - 1]
        if isinstance(result, Exception):
            raise result
        return result

    def calls_for(self, variant: EndpointVariant) -> List[Sequence]:
        return [parts for v, parts in self.calls if v is variant]

    def prompts_for(self, variant: EndpointVariant) -> List[str]:
        return [
            next(p.text for p in parts if isinstance(p, TextPart))
            for parts in self.calls_for(variant)
        ]


class InMemoryAssetStore:
    """
    Asset store keeping uploads in a dict.

    Identifiers matching ``fail_on`` raise ``fail_with(identifier)``, an
    AssetUploadError unless another exception factory is given.
    """

    def __init__(
        self,
        fail_on: Optional[Callable[[str], bool]] = None,
        fail_with: Optional[Callable[[str], Exception]] = None,
    ):
        self.assets: Dict[str, bytes] = {}
        self._fail_on = fail_on
        self._fail_with = fail_with
        self._lock = threading.Lock()

    def upload(self, data: bytes, identifier: str, folder: str) -> str:
        from question_toolkit.storage.assets import AssetUploadError

        if self._fail_on is not None and self._fail_on(identifier):
            if self._fail_with is not None:
                raise self._fail_with(identifier)
            raise AssetUploadError(f"upload refused for {identifier}")
        key = f"{folder}/{identifier}.png"
        with self._lock:
            self.assets[key] = bytes(data)
        return f"memory://{key}"


def build_pdf(page_count: int, *, with_figure: bool = True) -> bytes:
    """A small A4 PDF; each page has a line of text and optionally a black box."""
    doc = fitz.open()
    try:
        for number in range(1, page_count + 1):
            page = doc.new_page(width=595, height=842)
            page.insert_text((72, 72), f"Question {number}: what is shown below?")
            if with_figure:
                page.draw_rect(fitz.Rect(150, 200, 350, 400), color=(0, 0, 0), fill=(0, 0, 0))
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def make_pdf():
    """Factory fixture: make_pdf(pages) -> PDF bytes."""
    return build_pdf


@pytest.fixture
def memory_store():
    return InMemoryAssetStore()


@pytest.fixture
def fake_client_factory():
    return FakeGenerationClient


@pytest.fixture
def store_factory():
    return InMemoryAssetStore

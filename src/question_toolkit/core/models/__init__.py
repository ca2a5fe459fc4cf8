"""Core data models for documents, chunks, records and image assets."""

from .assets import ImageAssetReference
from .bounds import BoundingBox
from .chunks import Chunk, Document
from .records import CandidateRecord, ImagePresence, Option, QuestionType

__all__ = [
    "BoundingBox",
    "CandidateRecord",
    "Chunk",
    "Document",
    "ImageAssetReference",
    "ImagePresence",
    "Option",
    "QuestionType",
]

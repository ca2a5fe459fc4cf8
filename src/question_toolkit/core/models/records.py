"""
Module: records

Purpose:
    Provides the CandidateRecord dataclass - a structured question produced
    by parsing model output - together with its QuestionType, Option and
    ImagePresence building blocks.

    Records are mutable: the Image Localizer attaches image references to
    them in place after parsing.

Key Functions:
    - QuestionType.parse(value): Resolve wire names and aliases
    - ImagePresence.flag_count: Number of images the record claims
    - CandidateRecord.to_dict(): Serialize for the persistence collaborator
    - CandidateRecord.attached_image_count(): References actually attached

Dependencies:
    - core.models.assets: ImageAssetReference

Used By:
    - core.utils.serialization: Builds records from wire dictionaries
    - core.schemas.validator: Checks record invariants
    - extractor.flagging / extractor.localizer: Image presence and upload
    - generator.pipeline: Generated records
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .assets import ImageAssetReference


class QuestionType(str, Enum):
    """
    Kinds of question a record may hold.

    Values are the wire names used in prompts and serialized output.
    """

    SINGLE_CHOICE = "mcq_single"
    MULTI_CHOICE = "mcq_multi"
    BOOLEAN = "true_false"
    NUMERIC = "numeric"
    FREE_TEXT = "descriptive"

    def __str__(self) -> str:
        return self.value

    @property
    def is_choice(self) -> bool:
        """True for types whose answers are option labels."""
        return self in (QuestionType.SINGLE_CHOICE, QuestionType.MULTI_CHOICE, QuestionType.BOOLEAN)

    @property
    def single_answer(self) -> bool:
        return self in (QuestionType.SINGLE_CHOICE, QuestionType.BOOLEAN)

    @classmethod
    def parse(cls, value: Any) -> QuestionType:
        """
        Resolve a wire type name or a common alias.

        Raises:
            ValueError: If the value names no known type.
        """
        if isinstance(value, QuestionType):
            return value
        key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            pass
        if key in _TYPE_ALIASES:
            return _TYPE_ALIASES[key]
        raise ValueError(f"Unknown question type: {value!r}")


_TYPE_ALIASES: Dict[str, QuestionType] = {
    "mcq": QuestionType.SINGLE_CHOICE,
    "single": QuestionType.SINGLE_CHOICE,
    "single_choice": QuestionType.SINGLE_CHOICE,
    "multiple_choice": QuestionType.SINGLE_CHOICE,
    "multi": QuestionType.MULTI_CHOICE,
    "multi_choice": QuestionType.MULTI_CHOICE,
    "multiple_select": QuestionType.MULTI_CHOICE,
    "msq": QuestionType.MULTI_CHOICE,
    "boolean": QuestionType.BOOLEAN,
    "truefalse": QuestionType.BOOLEAN,
    "tf": QuestionType.BOOLEAN,
    "integer": QuestionType.NUMERIC,
    "nat": QuestionType.NUMERIC,
    "numerical": QuestionType.NUMERIC,
    "free_text": QuestionType.FREE_TEXT,
    "subjective": QuestionType.FREE_TEXT,
    "long_answer": QuestionType.FREE_TEXT,
    "short_answer": QuestionType.FREE_TEXT,
}


# ─────────────────────────────────────────────────────────────────────────────
# Building blocks
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Option:
    """
    One answer choice.

    Attributes:
        label: Display label, e.g. "A"
        text: Option text (may contain LaTeX)
        image: Uploaded option image, attached by the localizer
    """

    label: str
    text: str
    image: Optional[ImageAssetReference] = None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"label": self.label, "text": self.text}
        if self.image is not None:
            data["image"] = self.image.to_dict()
        return data


@dataclass(frozen=True, slots=True)
class ImagePresence:
    """
    Which parts of a record the model claims contain an image.

    Attributes:
        question: The question body has an image
        options: One flag per option, in option order
    """

    question: bool = False
    options: Tuple[bool, ...] = ()

    @property
    def flag_count(self) -> int:
        return int(self.question) + sum(1 for flag in self.options if flag)

    @property
    def any(self) -> bool:
        return self.flag_count > 0

    def to_dict(self) -> dict:
        return {"question": self.question, "options": list(self.options)}


# ─────────────────────────────────────────────────────────────────────────────
# Candidate record
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class CandidateRecord:
    """
    A question parsed from model output.

    Attributes:
        local_id: Identifier unique within one run; used for asset naming
        type: Question kind
        text: Question body
        options: Answer choices (empty for numeric and free-text)
        correct: Correct option labels, or numeric answers/ranges
        marks: Marks awarded when correct
        negative_marks: Marks deducted when wrong
        image_presence: Image flags set by phase-1 flagging
        estimated_page: Absolute 1-indexed page the question appears on
        chunk_index: Chunk the record was parsed from
        question_image: Uploaded question image
        image_errors: Human-readable notes for images that could not be attached
        explanation: Worked solution (generated records)
        difficulty: Easy / Medium / Hard (generated records)
        topic: Topic the record belongs to (generated records)
        tags: Free-form tags (generated records)
        raw: Wire dictionary the record was parsed from; read by
            phase-1 flagging, never serialized
    """

    local_id: str
    type: QuestionType
    text: str
    options: List[Option] = field(default_factory=list)
    correct: List[str] = field(default_factory=list)
    marks: float = 1.0
    negative_marks: float = 0.0
    image_presence: ImagePresence = field(default_factory=ImagePresence)
    estimated_page: Optional[int] = None
    chunk_index: Optional[int] = None
    question_image: Optional[ImageAssetReference] = None
    image_errors: List[str] = field(default_factory=list)
    explanation: str = ""
    difficulty: Optional[str] = None
    topic: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def option_labels(self) -> List[str]:
        return [option.label for option in self.options]

    def option(self, label: str) -> Optional[Option]:
        """Return the option with the given label, or None."""
        for option in self.options:
            if option.label == label:
                return option
        return None

    def attached_image_count(self) -> int:
        """Number of image references attached to this record."""
        count = 1 if self.question_image is not None else 0
        return count + sum(1 for option in self.options if option.image is not None)

    def to_dict(self) -> dict:
        """Serialize to the wire shape handed to the persistence collaborator."""
        data: Dict[str, Any] = {
            "id": self.local_id,
            "type": self.type.value,
            "text": self.text,
            "options": [option.to_dict() for option in self.options],
            "correct": list(self.correct),
            "marks": self.marks,
            "negative_marks": self.negative_marks,
            "image_presence": self.image_presence.to_dict(),
        }
        if self.estimated_page is not None:
            data["page"] = self.estimated_page
        if self.question_image is not None:
            data["question_image"] = self.question_image.to_dict()
        if self.image_errors:
            data["image_errors"] = list(self.image_errors)
        if self.explanation:
            data["explanation"] = self.explanation
        if self.difficulty:
            data["difficulty"] = self.difficulty
        if self.topic:
            data["topic"] = self.topic
        if self.tags:
            data["tags"] = list(self.tags)
        return data

    def __repr__(self) -> str:
        return f"CandidateRecord({self.local_id!r}, {self.type.value}, {len(self.options)} options)"

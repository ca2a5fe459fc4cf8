"""
Record Validation Utilities

Checks CandidateRecord invariants after wire normalization and provides
the label and numeric-answer normalization shared with serialization.

Invariants checked by ``validate_record()``:
- non-empty question text
- choice types carry at least two options with unique labels
- numeric and free-text types carry no options
- every correct label names an option (compared after normalization)
- single-choice and boolean records have at most one correct label
- numeric answers are a number or a "min to max" range with min < max
- marks and negative marks are non-negative

Violations raise RecordValidationError with the offending field.
"""

from __future__ import annotations

import math
import re
from typing import List, Optional, Tuple

from question_toolkit.common.errors import RecordValidationError
from question_toolkit.core.models.records import CandidateRecord, QuestionType

_LABEL_PUNCTUATION = re.compile(r"[()\.:\-]")
_NUMBER = r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?"
_DASH_RANGE = re.compile(rf"^\s*({_NUMBER})\s*-\s*({_NUMBER})\s*$")
_TO_RANGE = re.compile(rf"^\s*({_NUMBER})\s+to\s+({_NUMBER})\s*$", re.IGNORECASE)


def normalize_label(label: object) -> str:
    """
    Normalize an option label for comparison.

    Strips parentheses, dots, colons and hyphens, then upper-cases.

    Example:
        >>> normalize_label("(b).")
        'B'
    """
    return _LABEL_PUNCTUATION.sub("", str(label)).strip().upper()


def normalize_numeric_answer(answer: object) -> str:
    """
    Normalize a numeric answer string.

    A dash range such as "41.5-42.5" becomes "41.5 to 42.5". Other values
    are returned stripped and otherwise unchanged.
    """
    text = str(answer).strip()
    match = _DASH_RANGE.match(text)
    if match and not text.startswith("-"):
        return f"{match.group(1)} to {match.group(2)}"
    match = _TO_RANGE.match(text)
    if match:
        return f"{match.group(1)} to {match.group(2)}"
    return text


def parse_numeric_answer(answer: str) -> Optional[Tuple[float, float]]:
    """
    Parse a normalized numeric answer into an inclusive (low, high) pair.

    Returns None when the answer is neither a finite number nor a
    "min to max" range.
    """
    match = _TO_RANGE.match(answer)
    if match:
        low, high = float(match.group(1)), float(match.group(2))
    else:
        try:
            low = high = float(answer)
        except ValueError:
            return None
    if not (math.isfinite(low) and math.isfinite(high)):
        return None
    return low, high


def validate_record(record: CandidateRecord, *, require_answer: bool = False) -> None:
    """
    Validate a normalized record.

    Args:
        record: Record to check.
        require_answer: If True, an empty ``correct`` list is rejected.
            Extraction without an answer key leaves answers empty.

    Raises:
        RecordValidationError: On the first violated invariant.
    """
    rid = record.local_id

    if not record.text or not record.text.strip():
        raise RecordValidationError("question text is empty", field="text", record_id=rid)

    if record.marks < 0 or record.negative_marks < 0:
        raise RecordValidationError(
            f"marks must be non-negative (marks={record.marks}, negative_marks={record.negative_marks})",
            field="marks",
            record_id=rid,
        )

    if require_answer and not record.correct:
        raise RecordValidationError("no correct answer given", field="correct", record_id=rid)

    if record.type.is_choice:
        _validate_choice(record)
    else:
        if record.options:
            raise RecordValidationError(
                f"{record.type.value} questions must not have options ({len(record.options)} given)",
                field="options",
                record_id=rid,
            )
        if record.type is QuestionType.NUMERIC:
            _validate_numeric(record)

    presence = record.image_presence
    if presence.options and len(presence.options) != len(record.options):
        raise RecordValidationError(
            f"image flags for {len(presence.options)} options but record has {len(record.options)}",
            field="image_presence",
            record_id=rid,
        )


def _validate_choice(record: CandidateRecord) -> None:
    rid = record.local_id
    if len(record.options) < 2:
        raise RecordValidationError(
            f"{record.type.value} questions need at least 2 options ({len(record.options)} given)",
            field="options",
            record_id=rid,
        )

    labels = [normalize_label(option.label) for option in record.options]
    if len(set(labels)) != len(labels):
        raise RecordValidationError(
            f"duplicate option labels: {record.option_labels}",
            field="options",
            record_id=rid,
        )

    unknown: List[str] = [c for c in record.correct if normalize_label(c) not in labels]
    if unknown:
        raise RecordValidationError(
            f"correct answer {', '.join(unknown)} not found in options. Available: {', '.join(labels)}",
            field="correct",
            record_id=rid,
        )

    if record.type.single_answer and len(record.correct) > 1:
        raise RecordValidationError(
            f"{record.type.value} questions can only have one correct answer ({len(record.correct)} given)",
            field="correct",
            record_id=rid,
        )


def _validate_numeric(record: CandidateRecord) -> None:
    for answer in record.correct:
        parsed = parse_numeric_answer(answer)
        if parsed is None:
            raise RecordValidationError(
                f"numeric answer {answer!r} is not a number or range",
                field="correct",
                record_id=record.local_id,
            )
        low, high = parsed
        if " to " in answer and not low < high:
            raise RecordValidationError(
                f"numeric range {answer!r} must have min < max",
                field="correct",
                record_id=record.local_id,
            )

"""
Serialization Utilities

Builds CandidateRecord instances from the wire dictionaries the model
returns, normalizing the loose shapes the model produces before the
record invariants are checked.

Normalization applied by ``record_from_wire()``:
- type aliases resolved ("mcq" -> mcq_single, "boolean" -> true_false, ...)
- options given as bare strings become {label, text}
- missing option labels become A, B, C, ...
- true_false records without options get True / False options
- correct answers given as a string, number or bool become a list of
  strings, choice answers are mapped onto the matching option label
- numeric dash ranges "41.5-42.5" become "41.5 to 42.5"

Records leave the core via ``CandidateRecord.to_dict()``; ``serialize_record``
is kept as the symmetric entry point.
"""

from __future__ import annotations

import string
from typing import Any, Dict, List, Mapping, Optional

from question_toolkit.common.errors import RecordValidationError
from question_toolkit.core.models.records import CandidateRecord, Option, QuestionType
from question_toolkit.core.schemas.validator import (
    normalize_label,
    normalize_numeric_answer,
    validate_record,
)


# ─────────────────────────────────────────────────────────────────────────────
# Record Serialization
# ─────────────────────────────────────────────────────────────────────────────

def serialize_record(record: CandidateRecord) -> Dict[str, Any]:
    """Serialize a record for the persistence collaborator."""
    return record.to_dict()


def record_from_wire(
    data: Mapping[str, Any],
    *,
    fallback_id: str,
    chunk_index: Optional[int] = None,
    require_answer: bool = False,
) -> CandidateRecord:
    """
    Normalize and validate one wire record.

    Args:
        data: One element of the model's JSON array
        fallback_id: Identifier used when the record carries none
        chunk_index: Chunk the record was parsed from, if any
        require_answer: Reject records with no correct answer

    Returns:
        A validated CandidateRecord. ``raw`` holds the original mapping.

    Raises:
        RecordValidationError: If the record cannot be normalized or
            violates an invariant.
    """
    if not isinstance(data, Mapping):
        raise RecordValidationError(
            f"expected an object, got {type(data).__name__}",
            field="record",
            record_id=fallback_id,
        )

    record_id = _read_id(data.get("id"), fallback_id)

    try:
        qtype = QuestionType.parse(data.get("type"))
    except ValueError as e:
        raise RecordValidationError(str(e), field="type", record_id=record_id) from e

    options = _read_options(data.get("options"), qtype)
    correct = _read_correct(data.get("correct", data.get("answer")), qtype, options)

    record = CandidateRecord(
        local_id=record_id,
        type=qtype,
        text=str(data.get("text") or data.get("question") or "").strip(),
        options=options,
        correct=correct,
        marks=_read_number(data.get("marks"), 1.0, "marks", record_id),
        negative_marks=abs(_read_number(data.get("negative_marks"), 0.0, "negative_marks", record_id)),
        chunk_index=chunk_index,
        explanation=str(data.get("explanation") or ""),
        difficulty=_optional_str(data.get("difficulty")),
        topic=_optional_str(data.get("topic")),
        tags=[str(tag) for tag in data.get("tags") or [] if str(tag).strip()],
        raw=dict(data),
    )
    validate_record(record, require_answer=require_answer)
    return record


# ─────────────────────────────────────────────────────────────────────────────
# Field readers
# ─────────────────────────────────────────────────────────────────────────────

def _read_id(value: Any, fallback: str) -> str:
    if value is None or isinstance(value, bool):
        return fallback
    text = str(value).strip()
    return text or fallback


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _read_number(value: Any, default: float, field: str, record_id: str) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise RecordValidationError(f"{field} must be a number, got {value!r}", field=field, record_id=record_id)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise RecordValidationError(
            f"{field} must be a number, got {value!r}", field=field, record_id=record_id
        ) from e


def _default_label(index: int) -> str:
    letters = string.ascii_uppercase
    if index < len(letters):
        return letters[index]
    return f"{letters[index // len(letters) - 1]}{letters[index % len(letters)]}"


def _read_options(value: Any, qtype: QuestionType) -> List[Option]:
    items = value if isinstance(value, list) else []
    options: List[Option] = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            label = str(item.get("label") or "").strip() or _default_label(index)
            text = item.get("text")
            options.append(Option(label=label, text="" if text is None else str(text)))
        elif item is not None:
            options.append(Option(label=_default_label(index), text=str(item)))

    if qtype is QuestionType.BOOLEAN and not options:
        options = [Option(label="True", text="True"), Option(label="False", text="False")]
    return options


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _read_correct(value: Any, qtype: QuestionType, options: List[Option]) -> List[str]:
    if value is None:
        raw: List[Any] = []
    elif isinstance(value, (list, tuple)):
        raw = list(value)
    elif isinstance(value, str) and qtype is QuestionType.MULTI_CHOICE and "," in value:
        raw = value.split(",")
    else:
        raw = [value]

    answers = [_format_scalar(item) for item in raw if item is not None]
    answers = [answer for answer in answers if answer]

    if qtype.is_choice:
        by_label = {normalize_label(option.label): option.label for option in options}
        by_text = {normalize_label(option.text): option.label for option in options if option.text}
        mapped = []
        for answer in answers:
            key = normalize_label(answer)
            label = by_label.get(key)
            if label is None:
                # answer given as the option text
                label = by_text.get(key)
            mapped.append(label or answer)
        answers = mapped
    elif qtype is QuestionType.NUMERIC:
        answers = [normalize_numeric_answer(answer) for answer in answers]

    seen = set()
    unique = []
    for answer in answers:
        if answer not in seen:
            seen.add(answer)
            unique.append(answer)
    return unique

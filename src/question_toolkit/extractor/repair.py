"""
Module: extractor.repair

Purpose:
    Turns raw model text into structured data. Models asked for JSON often
    wrap it in code fences or emit LaTeX with single backslashes, which is
    either invalid JSON or silently decodes to control characters
    (``\\times`` becomes TAB + "imes"). This module runs an ordered ladder
    of repair strategies and returns the first clean parse.

Ladder (first success wins):
    1. direct: slice the JSON value out of the text and parse it
    2. conservative: double every backslash that is not a valid JSON escape
    3. aggressive: double every backslash, then restore valid escapes
    4. latex: escape known LaTeX commands, then apply stage 2

    A parse whose strings contain LaTeX damage (form feed, backspace, or a
    tab/CR/newline followed by the tail of a known command) counts as a
    failure so the ladder continues.

Key Functions:
    - repair(): Raw text -> list or dict
    - repair_with_stage(): Same, also reporting which stage succeeded
    - repair_records(): Raw text -> validated CandidateRecords + rejects

Dependencies:
    - json (std)
    - re (std)

Used By:
    - extractor.pipeline: Extraction responses (array)
    - extractor.localizer: Bounding-box responses (object)
    - generator.pipeline: Generation responses (array)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Union

from question_toolkit.common.errors import (
    RecordValidationError,
    ResponsePayloadCorruptError,
    ResponseShapeError,
)
from question_toolkit.common.thresholds import REPAIR_THRESHOLDS
from question_toolkit.core.models.records import CandidateRecord
from question_toolkit.core.utils.serialization import record_from_wire

logger = logging.getLogger(__name__)

Payload = Union[list, dict]


class PayloadShape(str, Enum):
    """Expected top-level JSON shape."""

    ARRAY = "array"
    OBJECT = "object"

    def __str__(self) -> str:
        return self.value


# Tokenizer: a valid JSON escape, or any other backslash
_ESCAPE_TOKEN = re.compile(r'\\(?:u[0-9a-fA-F]{4}|["\\/bfnrt])|\\')

# LaTeX commands escaped by the point-fix stage
LATEX_COMMANDS: Tuple[str, ...] = (
    "frac", "dfrac", "tfrac", "sqrt", "times", "theta", "text", "textbf", "begin",
    "end", "sum", "prod", "int", "infty", "alpha", "beta", "gamma", "delta",
    "lambda", "mu", "pi", "sigma", "omega", "phi", "rho", "tau", "nabla", "neq",
    "right", "left", "rightarrow", "leftarrow", "Rightarrow", "rangle", "langle",
    "cdot", "div", "pm", "leq", "geq", "le", "ge", "approx", "angle", "triangle",
    "circ", "degree", "overline", "vec", "hat", "bar", "mathrm", "mathbf",
    "lim", "log", "ln", "sin", "cos", "tan", "partial", "newline", "binom",
    "vert", "forall", "exists", "in", "notin", "subset", "cup", "cap",
    "ne", "nu", "neg", "ni", "to", "top", "tilde", "therefore", "rceil", "rfloor",
    "rbrace", "rvert", "lceil", "lfloor", "ceil", "floor", "bot", "because",
)


def _alternation(names) -> str:
    return "|".join(re.escape(name) for name in sorted(set(names), key=len, reverse=True))


_LATEX_POINT_FIX = re.compile(r"(?<!\\)\\(" + _alternation(LATEX_COMMANDS) + r")(?![A-Za-z])")

# Decoded-string damage: a \n, \r or \t escape that swallowed the first
# letter of a known command. \b and \f are caught as raw control characters.
_ESCAPED_INITIALS = {"n": "\n", "r": "\r", "t": "\t"}
_DAMAGED_COMMAND = re.compile(
    "(?:"
    + "|".join(
        re.escape(char) + "(?:" + _alternation(c[1:] for c in LATEX_COMMANDS if c[0] == initial) + ")"
        for initial, char in _ESCAPED_INITIALS.items()
    )
    + ")(?![A-Za-z])"
)


@dataclass(frozen=True)
class RejectedRecord:
    """A parsed element that failed record validation."""

    index: int
    record_id: str
    reason: str


@dataclass
class RecordParseResult:
    """
    Outcome of parsing one response into records.

    Attributes:
        records: Valid records, in response order
        rejected: Elements that failed validation, with reasons
        stage: Ladder stage that produced the parse
    """

    records: List[CandidateRecord] = field(default_factory=list)
    rejected: List[RejectedRecord] = field(default_factory=list)
    stage: str = "direct"


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def repair(raw_text: str, expected: PayloadShape = PayloadShape.ARRAY) -> Payload:
    """
    Parse model output, repairing common malformations.

    Args:
        raw_text: Raw response text.
        expected: Required top-level shape.

    Returns:
        The parsed list (ARRAY) or dict (OBJECT). A payload that is already
        valid and undamaged is returned exactly as ``json.loads`` reads it.

    Raises:
        ResponsePayloadCorruptError: If every stage fails. ``offset`` is the
            UTF-8 byte offset into ``raw_text`` of the first parse error.
        ResponseShapeError: If the payload parses to the wrong shape.

    Example:
        >>> repair('```json\n[{"id": "q1"}]\n```')
        [{'id': 'q1'}]
    """
    value, _ = repair_with_stage(raw_text, expected)
    return value


def repair_with_stage(
    raw_text: str,
    expected: PayloadShape = PayloadShape.ARRAY,
) -> Tuple[Payload, str]:
    """Like ``repair()``, also returning the name of the winning stage."""
    if not isinstance(raw_text, str):
        raise TypeError(f"raw_text must be str, got {type(raw_text).__name__}")

    start, candidate = _slice_json(raw_text)
    stage_errors: List[str] = []
    first_error: Optional[json.JSONDecodeError] = None

    for name, transform in _STAGES:
        text = transform(candidate)
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            if first_error is None:
                first_error = e
            stage_errors.append(f"{name}: {e.msg} (line {e.lineno} column {e.colno})")
            continue

        damage = _find_damage(value)
        if damage is not None:
            stage_errors.append(f"{name}: decoded text contains mangled LaTeX {damage!r}")
            continue

        _check_shape(value, expected)
        if name != "direct":
            logger.warning(
                f"Response repaired with {name} stage after {len(stage_errors)} failure(s)",
                extra={"stage": name, "stage_errors": stage_errors},
            )
        return value, name

    pos = first_error.pos if first_error is not None else 0
    offset = len(raw_text[: start + pos].encode("utf-8"))
    context = _context(raw_text, start + pos)
    logger.error(
        f"All repair stages failed: {'; '.join(stage_errors)}",
        extra={"offset": offset, "preview": raw_text[: REPAIR_THRESHOLDS.preview_chars]},
    )
    raise ResponsePayloadCorruptError(
        "Could not parse model response",
        offset=offset,
        context=context,
        stage_errors=stage_errors,
    )


def repair_records(
    raw_text: str,
    *,
    chunk_index: Optional[int] = None,
    require_answer: bool = False,
) -> RecordParseResult:
    """
    Parse an array response into validated records.

    Elements that fail validation are collected in ``rejected`` with their
    reason; they never abort the rest of the response.

    Raises:
        ResponsePayloadCorruptError / ResponseShapeError: As ``repair()``.
    """
    items, stage = repair_with_stage(raw_text, PayloadShape.ARRAY)
    result = RecordParseResult(stage=stage)
    prefix = f"c{chunk_index}_q" if chunk_index is not None else "q"

    for index, item in enumerate(items):
        fallback_id = f"{prefix}{index + 1}"
        try:
            record = record_from_wire(
                item,
                fallback_id=fallback_id,
                chunk_index=chunk_index,
                require_answer=require_answer,
            )
        except RecordValidationError as e:
            rejected = RejectedRecord(index=index, record_id=e.record_id or fallback_id, reason=str(e))
            result.rejected.append(rejected)
            logger.warning(
                f"Rejected record {rejected.record_id}: {e}",
                extra={"chunk_index": chunk_index, "record_index": index, "field": e.field},
            )
            continue
        result.records.append(record)

    logger.debug(
        f"Parsed {len(result.records)} record(s), rejected {len(result.rejected)}",
        extra={"chunk_index": chunk_index, "stage": stage},
    )
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Stages
# ─────────────────────────────────────────────────────────────────────────────

def _direct(text: str) -> str:
    return text


def escape_invalid_backslashes(text: str) -> str:
    """Double every backslash that does not start a valid JSON escape."""

    def _replace(match: re.Match) -> str:
        token = match.group(0)
        return token if len(token) > 1 else "\\\\"

    return _ESCAPE_TOKEN.sub(_replace, text)


def _aggressive(text: str) -> str:
    fixed = text.replace("\\", "\\\\")
    fixed = fixed.replace("\\\\\\\\", "\\\\")
    for char in ('"', "n", "r", "t", "/", "b", "f"):
        fixed = fixed.replace("\\\\" + char, "\\" + char)
    return re.sub(r"\\\\(u[0-9a-fA-F]{4})", r"\\\1", fixed)


def _latex_point_fix(text: str) -> str:
    return escape_invalid_backslashes(_LATEX_POINT_FIX.sub(r"\\\\\1", text))


_STAGES: Tuple[Tuple[str, Callable[[str], str]], ...] = (
    ("direct", _direct),
    ("conservative", escape_invalid_backslashes),
    ("aggressive", _aggressive),
    ("latex", _latex_point_fix),
)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _slice_json(raw_text: str) -> Tuple[int, str]:
    """
    Return (start index, candidate) spanning the first opener to its last closer.

    Code fences around the value fall outside the slice. When no opener is
    found the stripped text is returned so the parse error is reported.
    """
    openers = [i for i in (raw_text.find("["), raw_text.find("{")) if i != -1]
    if not openers:
        stripped = raw_text.strip()
        return raw_text.find(stripped) if stripped else 0, stripped
    start = min(openers)
    closer = "]" if raw_text[start] == "[" else "}"
    end = raw_text.rfind(closer)
    if end < start:
        return start, raw_text[start:]
    return start, raw_text[start : end + 1]


def _find_damage(value: Any) -> Optional[str]:
    """Return the first damaged string fragment inside a parsed value, if any."""
    if isinstance(value, str):
        if "\x08" in value or "\x0c" in value:
            index = value.find("\x08") if "\x08" in value else value.find("\x0c")
            return value[index : index + 8]
        match = _DAMAGED_COMMAND.search(value)
        return match.group(0) if match else None
    if isinstance(value, list):
        for item in value:
            found = _find_damage(item)
            if found is not None:
                return found
    elif isinstance(value, dict):
        for key, item in value.items():
            found = _find_damage(key)
            if found is None:
                found = _find_damage(item)
            if found is not None:
                return found
    return None


def _check_shape(value: Any, expected: PayloadShape) -> None:
    actual = "array" if isinstance(value, list) else "object" if isinstance(value, dict) else type(value).__name__
    if actual != expected.value:
        raise ResponseShapeError(expected.value, actual)


def _context(text: str, index: int) -> str:
    width = REPAIR_THRESHOLDS.context_chars
    return text[max(0, index - width) : index + width]

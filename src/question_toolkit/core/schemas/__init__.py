"""Record invariants and normalization helpers."""

from .validator import (
    normalize_label,
    normalize_numeric_answer,
    parse_numeric_answer,
    validate_record,
)

__all__ = [
    "normalize_label",
    "normalize_numeric_answer",
    "parse_numeric_answer",
    "validate_record",
]

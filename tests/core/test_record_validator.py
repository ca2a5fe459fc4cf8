"""
Unit Tests for Record Validation

Tests for validate_record() and the label / numeric normalizers.
"""

import pytest

from question_toolkit.common.errors import RecordValidationError
from question_toolkit.core.models.records import CandidateRecord, ImagePresence, Option, QuestionType
from question_toolkit.core.schemas.validator import (
    normalize_label,
    normalize_numeric_answer,
    parse_numeric_answer,
    validate_record,
)


def _choice(**overrides) -> CandidateRecord:
    fields = dict(
        local_id="q1",
        type=QuestionType.SINGLE_CHOICE,
        text="Which gas do plants absorb?",
        options=[Option("A", "Oxygen"), Option("B", "Carbon dioxide")],
        correct=["B"],
    )
    fields.update(overrides)
    return CandidateRecord(**fields)


class TestNormalizers:
    """Tests for label and numeric normalization."""

    @pytest.mark.parametrize("raw,expected", [("(b).", "B"), ("a:", "A"), (" c- ", "C"), ("True", "TRUE")])
    def test_normalize_label_when_punctuated_then_stripped_and_upper(self, raw, expected):
        assert normalize_label(raw) == expected

    def test_normalize_numeric_answer_when_dash_range_then_to_range(self):
        assert normalize_numeric_answer("41.5-42.5") == "41.5 to 42.5"

    def test_normalize_numeric_answer_when_negative_number_then_unchanged(self):
        assert normalize_numeric_answer("-3") == "-3"

    def test_parse_numeric_answer_when_range_then_returns_bounds(self):
        assert parse_numeric_answer("1 to 2.5") == (1.0, 2.5)

    def test_parse_numeric_answer_when_text_then_returns_none(self):
        assert parse_numeric_answer("about five") is None


class TestValidateRecord:
    """Tests for validate_record() invariants."""

    def test_validate_when_valid_choice_then_passes(self):
        validate_record(_choice())

    def test_validate_when_text_empty_then_raises_on_text(self):
        with pytest.raises(RecordValidationError) as exc:
            validate_record(_choice(text="   "))
        assert exc.value.field == "text"
        assert exc.value.record_id == "q1"

    def test_validate_when_single_option_then_raises_on_options(self):
        with pytest.raises(RecordValidationError, match="at least 2 options"):
            validate_record(_choice(options=[Option("A", "Only")], correct=["A"]))

    def test_validate_when_duplicate_labels_after_normalization_then_raises(self):
        with pytest.raises(RecordValidationError, match="duplicate option labels"):
            validate_record(_choice(options=[Option("A", "x"), Option("(a)", "y")], correct=["A"]))

    def test_validate_when_correct_label_unknown_then_raises_on_correct(self):
        with pytest.raises(RecordValidationError) as exc:
            validate_record(_choice(correct=["E"]))
        assert exc.value.field == "correct"

    def test_validate_when_single_choice_has_two_answers_then_raises(self):
        with pytest.raises(RecordValidationError, match="only have one correct answer"):
            validate_record(_choice(correct=["A", "B"]))

    def test_validate_when_multi_choice_has_two_answers_then_passes(self):
        validate_record(_choice(type=QuestionType.MULTI_CHOICE, correct=["A", "B"]))

    def test_validate_when_answer_missing_and_not_required_then_passes(self):
        validate_record(_choice(correct=[]))

    def test_validate_when_answer_missing_and_required_then_raises(self):
        with pytest.raises(RecordValidationError, match="no correct answer"):
            validate_record(_choice(correct=[]), require_answer=True)

    def test_validate_when_numeric_has_options_then_raises(self):
        record = _choice(type=QuestionType.NUMERIC, correct=["4"])
        with pytest.raises(RecordValidationError, match="must not have options"):
            validate_record(record)

    def test_validate_when_numeric_range_reversed_then_raises(self):
        record = CandidateRecord("q2", QuestionType.NUMERIC, "Estimate g", correct=["10 to 9"])
        with pytest.raises(RecordValidationError, match="min < max"):
            validate_record(record)

    def test_validate_when_negative_marks_then_raises(self):
        with pytest.raises(RecordValidationError) as exc:
            validate_record(_choice(marks=-1))
        assert exc.value.field == "marks"

    def test_validate_when_option_flags_mismatch_then_raises(self):
        record = _choice(image_presence=ImagePresence(question=False, options=(True,)))
        with pytest.raises(RecordValidationError) as exc:
            validate_record(record)
        assert exc.value.field == "image_presence"

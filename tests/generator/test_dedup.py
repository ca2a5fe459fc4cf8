"""
Unit Tests for Near-Duplicate Filtering

Tests for tokenize(), jaccard_similarity() and filter_near_duplicates().
"""

import itertools

import pytest

from question_toolkit.core.models.records import CandidateRecord, QuestionType
from question_toolkit.generator.dedup import (
    filter_near_duplicates,
    jaccard_similarity,
    max_pairwise_similarity,
    tokenize,
)


def _records(*texts):
    return [CandidateRecord(f"q{i}", QuestionType.FREE_TEXT, text) for i, text in enumerate(texts)]


class TestTokenize:
    """Tests for tokenize()."""

    def test_tokenize_when_sentence_then_drops_stop_words_short_words_and_punctuation(self):
        assert tokenize("What is the colour of the apple?") == {"colour", "apple"}

    def test_tokenize_when_mixed_case_then_lower_cased(self):
        assert tokenize("Newton's LAWS") == {"newtons", "laws"}

    def test_tokenize_when_empty_then_empty_set(self):
        assert tokenize("") == frozenset()


class TestJaccardSimilarity:
    """Tests for jaccard_similarity()."""

    def test_jaccard_when_identical_then_one(self):
        assert jaccard_similarity("Define kinetic energy", "define kinetic energy!") == 1.0

    def test_jaccard_when_one_word_differs_then_half(self):
        a = "What is the color of the apple in the basket?"
        b = "What is the color of the banana in the basket?"
        assert jaccard_similarity(a, b) == pytest.approx(0.5)

    def test_jaccard_when_no_scoring_words_and_same_text_then_one(self):
        assert jaccard_similarity("What is 12 x 13?", "what is 12 x 13") == 1.0

    def test_jaccard_when_no_scoring_words_and_different_text_then_zero(self):
        assert jaccard_similarity("What is 12 x 13?", "What is 12 x 14?") == 0.0


class TestFilterNearDuplicates:
    """Tests for filter_near_duplicates()."""

    def test_filter_when_duplicate_then_first_seen_kept(self):
        records = _records("Define kinetic energy", "State Ohm's law", "Define kinetic energy.")

        kept = filter_near_duplicates(records, threshold=0.8)

        assert [r.local_id for r in kept] == ["q0", "q1"]

    def test_filter_when_exact_duplicates_have_no_scoring_words_then_one_kept(self):
        records = _records("What is 12 x 13?", "What is 12 x 13?", "What is 12 x 14?")

        kept = filter_near_duplicates(records, threshold=0.8)

        assert [r.local_id for r in kept] == ["q0", "q2"]

    def test_filter_when_similarity_equals_threshold_then_both_kept(self):
        records = _records("alpha beta", "alpha gamma")  # 1/3 similar
        assert len(filter_near_duplicates(records, threshold=1 / 3)) == 2

    def test_filter_when_any_input_then_output_has_no_similar_pair(self):
        """Output never grows and never contains a pair above the threshold."""
        words = ["force", "mass", "energy", "velocity", "charge"]
        texts = [" ".join(combo) for r in (2, 3) for combo in itertools.combinations(words, r)]
        records = _records(*texts)

        for threshold in (0.3, 0.5, 0.8):
            kept = filter_near_duplicates(records, threshold)
            assert len(kept) <= len(records)
            assert max_pairwise_similarity([r.text for r in kept]) <= threshold
            # filtering a filtered list changes nothing
            assert filter_near_duplicates(kept, threshold) == kept

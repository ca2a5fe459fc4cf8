"""
Unit Tests for Generation Batching and Prompts
"""

import pytest

from question_toolkit.common.errors import ConfigurationError
from question_toolkit.core.models.records import CandidateRecord, QuestionType
from question_toolkit.generator.batching import avoid_hint, plan_batches, topup_size
from question_toolkit.generator.config import GenerationRequest, GeneratorConfig
from question_toolkit.generator.prompts import build_generation_prompt, difficulty_label


class TestPlanBatches:
    """Tests for plan_batches()."""

    @pytest.mark.parametrize(
        "count,expected",
        [(15, [10, 8]), (3, [10]), (8, [10]), (9, [10, 1]), (25, [10, 10, 10]), (50, [10] * 6)],
    )
    def test_plan_batches_when_count_then_overgenerates_by_twenty_percent(self, count, expected):
        assert plan_batches(count, batch_size=10, factor=1.2) == expected

    def test_plan_batches_when_any_count_then_total_covers_count(self):
        for count in range(1, 60):
            sizes = plan_batches(count)
            assert sum(sizes) >= count
            assert all(0 < size <= 10 for size in sizes)

    def test_plan_batches_when_count_zero_then_raises(self):
        with pytest.raises(ValueError):
            plan_batches(0)


class TestTopup:
    """Tests for topup_size() and avoid_hint()."""

    @pytest.mark.parametrize("needed,expected", [(0, 0), (1, 2), (2, 3), (7, 11), (10, 15)])
    def test_topup_size_when_needed_then_one_and_a_half_times(self, needed, expected):
        assert topup_size(needed) == expected

    def test_avoid_hint_when_records_then_quotes_prefixes(self):
        records = [CandidateRecord(f"q{i}", QuestionType.FREE_TEXT, "x" * 80 + str(i)) for i in range(30)]

        hint = avoid_hint(records)

        assert hint.startswith("IMPORTANT: Do NOT repeat questions similar to: ")
        quoted = hint.split(": ", 2)[2].split("; ")
        assert len(quoted) == 20
        assert all(len(q) == 50 for q in quoted)

    def test_avoid_hint_when_no_records_then_empty(self):
        assert avoid_hint([]) == ""


class TestPrompts:
    """Tests for difficulty mapping and prompt building."""

    @pytest.mark.parametrize(
        "difficulty,label",
        [(1, "Easy"), (30, "Easy"), (31, "Medium"), (69, "Medium"), (70, "Hard"), (100, "Hard")],
    )
    def test_difficulty_label_when_value_then_band(self, difficulty, label):
        assert difficulty_label(difficulty) == label

    def test_build_prompt_when_request_then_names_count_topic_type_and_guidance(self):
        request = GenerationRequest(
            topic="Photosynthesis", subject="Biology", grade="10", count=5,
            type="true_false", difficulty=80, guidance="Use UK spelling",
        )

        prompt = build_generation_prompt(request, 6, hint="IMPORTANT: Do NOT repeat questions similar to: x")

        assert "Create exactly 6 Hard true/false questions" in prompt
        assert "Topic: Photosynthesis" in prompt
        assert '"type": "true_false"' in prompt
        assert "- Use UK spelling" in prompt
        assert "Do NOT repeat" in prompt


class TestGenerationRequest:
    """Tests for GenerationRequest validation."""

    def test_init_when_type_alias_then_resolved(self):
        request = GenerationRequest("Forces", "Physics", 9, 3, type="mcq")
        assert request.type is QuestionType.SINGLE_CHOICE
        assert request.grade == "9"

    @pytest.mark.parametrize(
        "overrides",
        [{"count": 0}, {"count": True}, {"difficulty": 0}, {"difficulty": 101}, {"type": "essay_map"}, {"topic": " "}],
    )
    def test_init_when_invalid_then_raises_configuration_error(self, overrides):
        fields = dict(topic="Forces", subject="Physics", grade="9", count=3)
        fields.update(overrides)
        with pytest.raises(ConfigurationError):
            GenerationRequest(**fields)


class TestGeneratorConfig:
    """Tests for GeneratorConfig."""

    def test_from_env_when_overrides_then_applied(self):
        config = GeneratorConfig.from_env(
            {"GENERATION_BATCH_SIZE": "5", "GENERATION_SIMILARITY_THRESHOLD": "0.6"}
        )
        assert config.batch_size == 5
        assert config.similarity_threshold == 0.6

    def test_from_env_when_empty_then_defaults(self):
        config = GeneratorConfig.from_env({})
        assert config.batch_size == 10
        assert config.similarity_threshold == 0.8
        assert config.parallel is False

    def test_init_when_threshold_out_of_range_then_raises(self):
        with pytest.raises(ConfigurationError, match="similarity_threshold"):
            GeneratorConfig(similarity_threshold=1.5)

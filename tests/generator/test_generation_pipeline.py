"""
Integration Tests for the Generation Pipeline

The generation service is faked; each fake batch reads the requested
count back out of the prompt.
"""

import json
import re

import pytest

from question_toolkit.client.transport import EndpointVariant
from question_toolkit.common.errors import ConfigurationError, ServiceOverloadedError
from question_toolkit.extractor.diagnostics import FailureScope
from question_toolkit.generator.config import GenerationRequest, GeneratorConfig
from question_toolkit.generator.dedup import max_pairwise_similarity
from question_toolkit.generator.pipeline import QuestionGenerator, generate

FRUITS = [
    "apple", "banana", "cherry", "date", "elderberry", "fig", "grape", "honeydew", "kiwi", "lemon",
    "mango", "nectarine", "orange", "papaya", "quince", "raspberry", "strawberry", "tangerine",
    "ugli", "vanilla",
]

_COUNT = re.compile(r"Create exactly (\d+)")


def _requested(parts) -> int:
    return int(_COUNT.search(parts[0].text).group(1))


def _item(text, qtype="mcq_single"):
    item = {"type": qtype, "text": text, "explanation": "Because."}
    if qtype == "numeric":
        item.update(options=[], correct=["42"])
    else:
        item.update(options=[{"label": "A", "text": "Opt A"}, {"label": "B", "text": "Opt B"}], correct=["A"])
    return item


def fruit_batches(parts, variant, number):
    """Batch n returns items starting at (n - 1) * 7, so consecutive batches overlap."""
    start = (number - 1) * 7
    return json.dumps([
        _item(f"What is the color of the {FRUITS[(start + i) % len(FRUITS)]} in the basket?")
        for i in range(_requested(parts))
    ])


def distinct_batches(parts, variant, number):
    """Every item in every batch is distinct."""
    return json.dumps([
        _item(f"Explain concept alpha{number}x{i} using example beta{number}x{i}")
        for i in range(_requested(parts))
    ])


REQUEST = GenerationRequest(topic="Fruit", subject="Biology", grade="7", count=15)


class TestGenerate:
    """Tests for QuestionGenerator.generate()."""

    def test_generate_when_batches_overlap_then_duplicates_removed_and_count_met(self, fake_client_factory):
        # Arrange
        client = fake_client_factory(fruit_batches)

        # Act
        result = QuestionGenerator(client).generate(REQUEST)

        # Assert: 10 + 8 requested, 18 returned, 3 overlapping
        assert result.success
        assert result.calls_made == 2
        assert [_requested(p) for p in client.calls_for(EndpointVariant.GENERATION)] == [10, 8]
        assert result.metadata["raw_count"] == 18
        assert result.metadata["unique_count"] == 15
        assert len(result.records) == 15
        assert result.shortfall == 0
        assert len({r.text for r in result.records}) == 15
        assert max_pairwise_similarity([r.text for r in result.records]) <= 0.8

    def test_generate_when_sequential_then_later_batches_get_avoid_hint(self, fake_client_factory):
        client = fake_client_factory(fruit_batches)

        QuestionGenerator(client).generate(REQUEST)

        first, second = client.prompts_for(EndpointVariant.GENERATION)
        assert "Do NOT repeat" not in first
        assert "Do NOT repeat questions similar to: What is the color of the apple" in second

    def test_generate_when_done_then_ids_unique_and_prefixed(self, fake_client_factory):
        result = QuestionGenerator(fake_client_factory(fruit_batches)).generate(REQUEST)

        ids = [r.local_id for r in result.records]
        assert len(set(ids)) == 15
        assert all(re.fullmatch(r"gen_\d+_\d+", i) for i in ids)
        assert all(r.topic == "Fruit" for r in result.records)

    def test_generate_when_model_repeats_itself_then_tops_up_and_reports_shortfall(self, fake_client_factory):
        def same_three(parts, variant, number):
            return json.dumps([_item(f"Name the capital of {c}") for c in ("France", "Spain", "Italy")])

        client = fake_client_factory(same_three)
        request = GenerationRequest(topic="Capitals", subject="Geography", grade="5", count=5)

        result = QuestionGenerator(client, GeneratorConfig(max_extra_batches=2)).generate(request)

        assert result.success
        assert len(result.records) == 3
        assert result.shortfall == 2
        assert result.calls_made == 3
        assert result.metadata["extra_batches"] == 2
        # the first top-up asks for ceil(2 * 1.5)
        assert _requested(client.calls_for(EndpointVariant.GENERATION)[1]) == 3

    def test_generate_when_one_batch_fails_then_partial_failure_and_top_up(self, fake_client_factory):
        def first_fails(parts, variant, number):
            if number == 1:
                return ServiceOverloadedError("busy", status=503)
            return distinct_batches(parts, variant, number)

        client = fake_client_factory(first_fails)

        result = QuestionGenerator(client).generate(REQUEST)

        assert result.success
        assert len(result.records) == 15
        assert result.calls_made == 3
        batch_failures = [f for f in result.failures if f.scope is FailureScope.BATCH]
        assert len(batch_failures) == 1
        assert batch_failures[0].error_type == "ServiceOverloadedError"
        # 8 arrived, so the top-up asks for ceil(7 * 1.5)
        assert _requested(client.calls_for(EndpointVariant.GENERATION)[2]) == 11

    def test_generate_when_every_call_fails_then_failure_envelope(self, fake_client_factory):
        client = fake_client_factory(lambda parts, variant, number: ServiceOverloadedError("busy", status=503))

        result = QuestionGenerator(client).generate(REQUEST)

        assert not result.success
        assert result.records == []
        assert result.shortfall == 15
        assert "busy" in result.error
        assert result.calls_made == 4

    def test_generate_when_wrong_type_returned_then_rejected(self, fake_client_factory):
        def mixed(parts, variant, number):
            return json.dumps([_item("Compute six times seven", "numeric"), _item("Pick the largest planet")])

        client = fake_client_factory(mixed)
        request = GenerationRequest(topic="Space", subject="Science", grade="6", count=1)

        result = QuestionGenerator(client).generate(request)

        assert [r.text for r in result.records] == ["Pick the largest planet"]
        assert any(f.scope is FailureScope.RECORD and "numeric" in f.message for f in result.failures)

    def test_generate_when_parallel_then_no_hint_and_all_batches_used(self, fake_client_factory):
        client = fake_client_factory(distinct_batches)
        request = GenerationRequest(topic="Energy", subject="Physics", grade="9", count=25)

        result = QuestionGenerator(client, GeneratorConfig(parallel=True)).generate(request)

        assert len(result.records) == 25
        assert result.calls_made == 3
        assert all("Do NOT repeat" not in p for p in client.prompts_for(EndpointVariant.GENERATION))

    def test_generate_when_response_has_latex_then_repaired(self, fake_client_factory):
        raw = '```json\n[{"type": "mcq_single", "text": "Evaluate \\frac{1}{2} + \\frac{1}{4}", ' \
              '"options": ["3/4", "1/6"], "correct": "A"}]\n```'
        client = fake_client_factory([raw])
        request = GenerationRequest(topic="Fractions", subject="Maths", grade="6", count=1)

        result = QuestionGenerator(client).generate(request)

        assert result.records[0].text == "Evaluate \\frac{1}{2} + \\frac{1}{4}"


class TestGenerateFunction:
    """Tests for the module-level generate()."""

    def test_generate_when_invalid_count_then_raises_configuration_error(self, fake_client_factory):
        with pytest.raises(ConfigurationError):
            generate("Fruit", "Biology", "7", 0, client=fake_client_factory([]))

    def test_generate_when_valid_then_delegates(self, fake_client_factory):
        result = generate("Fruit", "Biology", "7", 15, "mcq_single", 20, client=fake_client_factory(fruit_batches))

        assert len(result.records) == 15
        assert result.metadata["difficulty"] == "easy"
        assert result.to_dict()["total_questions"] == 15

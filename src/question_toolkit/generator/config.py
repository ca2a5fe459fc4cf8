"""
Module: generator.config

Purpose:
    Configuration for prompt-driven question generation: batch sizing,
    over-generation, top-up and near-duplicate filtering, plus the
    GenerationRequest describing what to generate.

Key Classes:
    - GeneratorConfig: Batch and dedup settings
    - GenerationRequest: Topic, subject, grade, count, type, difficulty

Dependencies:
    - dataclasses: For frozen dataclass support
    - common.thresholds: Default values

Used By:
    - generator.pipeline: QuestionGenerator
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from question_toolkit.client.config import env_int
from question_toolkit.common.errors import ConfigurationError
from question_toolkit.common.thresholds import GENERATION_THRESHOLDS
from question_toolkit.core.models.records import QuestionType


@dataclass(frozen=True)
class GeneratorConfig:
    """
    Configuration for batch generation.

    Attributes:
        batch_size: Questions requested per call (default 10)
        overgeneration_factor: Target = ceil(count * factor) (default 1.2)
        topup_factor: Top-up asks for ceil(needed * factor) (default 1.5)
        max_extra_batches: Top-up calls allowed per run (default 2)
        similarity_threshold: Jaccard similarity above which two questions
            are duplicates (default 0.8)
        parallel: Run planned batches concurrently, without the
            "do not repeat" hint (default False)
        max_workers: Thread pool size when parallel (default 4)
        call_deadline_s: Optional per-call budget passed to the client
    """

    batch_size: int = GENERATION_THRESHOLDS.batch_size
    overgeneration_factor: float = GENERATION_THRESHOLDS.overgeneration_factor
    topup_factor: float = GENERATION_THRESHOLDS.topup_factor
    max_extra_batches: int = GENERATION_THRESHOLDS.max_extra_batches
    similarity_threshold: float = GENERATION_THRESHOLDS.similarity_threshold
    parallel: bool = False
    max_workers: int = 4
    call_deadline_s: Optional[float] = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1: {self.batch_size}")
        if self.overgeneration_factor < 1.0:
            raise ConfigurationError(f"overgeneration_factor must be >= 1.0: {self.overgeneration_factor}")
        if self.topup_factor < 1.0:
            raise ConfigurationError(f"topup_factor must be >= 1.0: {self.topup_factor}")
        if self.max_extra_batches < 0:
            raise ConfigurationError(f"max_extra_batches must be >= 0: {self.max_extra_batches}")
        if not 0.0 < self.similarity_threshold <= 1.0:
            raise ConfigurationError(f"similarity_threshold must be within (0, 1]: {self.similarity_threshold}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1: {self.max_workers}")
        if self.call_deadline_s is not None and self.call_deadline_s <= 0:
            raise ConfigurationError(f"call_deadline_s must be positive: {self.call_deadline_s}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> GeneratorConfig:
        """Read GENERATION_BATCH_SIZE and GENERATION_SIMILARITY_THRESHOLD."""
        env = os.environ if env is None else env
        threshold = env.get("GENERATION_SIMILARITY_THRESHOLD")
        try:
            similarity = float(threshold) if threshold else GENERATION_THRESHOLDS.similarity_threshold
        except ValueError as e:
            raise ConfigurationError(
                f"GENERATION_SIMILARITY_THRESHOLD must be a number, got {threshold!r}"
            ) from e
        return cls(
            batch_size=env_int(env, "GENERATION_BATCH_SIZE", GENERATION_THRESHOLDS.batch_size),
            similarity_threshold=similarity,
        )


@dataclass(frozen=True)
class GenerationRequest:
    """
    What to generate.

    Attributes:
        topic: Topic the questions cover
        subject: Exam subject
        grade: Grade or level of the audience
        count: Exact number of questions wanted
        type: Question type (wire name or QuestionType)
        difficulty: 1-100; <=30 is Easy, >=70 is Hard, otherwise Medium
        guidance: Extra instructions appended to the prompt
    """

    topic: str
    subject: str
    grade: str
    count: int
    type: Union[QuestionType, str] = QuestionType.SINGLE_CHOICE
    difficulty: int = 50
    guidance: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.topic or not self.topic.strip():
            raise ConfigurationError("topic must not be empty")
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise ConfigurationError(f"count must be a positive integer: {self.count!r}")
        if not 1 <= self.difficulty <= 100:
            raise ConfigurationError(f"difficulty must be within 1-100: {self.difficulty}")
        try:
            object.__setattr__(self, "type", QuestionType.parse(self.type))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        object.__setattr__(self, "grade", str(self.grade))

"""
Prompt-driven question generation.

Public API:
    generate(topic, subject, grade, count, type, difficulty, *, client, config)
    QuestionGenerator(client, config).generate(GenerationRequest(...))
"""

from .batching import avoid_hint, plan_batches, topup_size
from .config import GenerationRequest, GeneratorConfig
from .dedup import filter_near_duplicates, jaccard_similarity, tokenize
from .pipeline import GenerationResult, QuestionGenerator, generate
from .prompts import build_generation_prompt, difficulty_label

__all__ = [
    "GenerationRequest",
    "GenerationResult",
    "GeneratorConfig",
    "QuestionGenerator",
    "avoid_hint",
    "build_generation_prompt",
    "difficulty_label",
    "filter_near_duplicates",
    "generate",
    "jaccard_similarity",
    "plan_batches",
    "tokenize",
    "topup_size",
]

"""
Prompt text for question generation.

The prompt names the topic, subject, grade, difficulty band and question
type, asks for an exact number of questions, and pins the JSON schema.
An optional hint line lists earlier questions the model must not repeat.
"""

from __future__ import annotations

from typing import Optional

from question_toolkit.common.thresholds import GENERATION_THRESHOLDS
from question_toolkit.core.models.records import QuestionType

from .config import GenerationRequest

GENERATION_PROMPT = """You are an expert exam question writer.

Create exactly {count} {difficulty_label} {type_description} questions.

Topic: {topic}
Subject: {subject}
Grade: {grade}
Difficulty: {difficulty_label} ({difficulty}/100) - {difficulty_description}

Rules:
- Every question must be self-contained, unambiguous and distinct from the others.
- {type_rules}
- Write mathematical notation as LaTeX with escaped backslashes (\\\\frac, \\\\times).
- Include a short explanation of the correct answer.
{extra}
Return ONLY a JSON array where every question follows this schema:
[
  {{
    "id": "q1",
    "type": "{type}",
    "text": "...",
    "options": {options_example},
    "correct": {correct_example},
    "marks": 1,
    "negative_marks": 0,
    "explanation": "...",
    "difficulty": "{difficulty_key}",
    "topic": "{topic}",
    "subject": "{subject}",
    "tags": ["{topic}", "{subject}", "{grade}"],
    "images": {{"question": false, "options": []}}
  }}
]"""

_TYPE_DESCRIPTIONS = {
    QuestionType.SINGLE_CHOICE: "multiple-choice (single correct answer)",
    QuestionType.MULTI_CHOICE: "multiple-choice (one or more correct answers)",
    QuestionType.BOOLEAN: "true/false",
    QuestionType.NUMERIC: "numeric-answer",
    QuestionType.FREE_TEXT: "descriptive",
}

_TYPE_RULES = {
    QuestionType.SINGLE_CHOICE: "Give four options labelled A-D with exactly one correct label in \"correct\".",
    QuestionType.MULTI_CHOICE: "Give four options labelled A-D with every correct label in \"correct\".",
    QuestionType.BOOLEAN: "Options are exactly \"True\" and \"False\"; \"correct\" holds one of them.",
    QuestionType.NUMERIC: "Leave \"options\" empty; \"correct\" holds one number or a range \"min to max\".",
    QuestionType.FREE_TEXT: "Leave \"options\" empty; \"correct\" holds a short model answer or is empty.",
}

_OPTIONS_EXAMPLES = {
    QuestionType.SINGLE_CHOICE: '[{"label": "A", "text": "..."}, {"label": "B", "text": "..."}]',
    QuestionType.MULTI_CHOICE: '[{"label": "A", "text": "..."}, {"label": "B", "text": "..."}]',
    QuestionType.BOOLEAN: '[{"label": "True", "text": "True"}, {"label": "False", "text": "False"}]',
    QuestionType.NUMERIC: "[]",
    QuestionType.FREE_TEXT: "[]",
}

_CORRECT_EXAMPLES = {
    QuestionType.SINGLE_CHOICE: '["A"]',
    QuestionType.MULTI_CHOICE: '["A", "C"]',
    QuestionType.BOOLEAN: '["True"]',
    QuestionType.NUMERIC: '["42.5"]',
    QuestionType.FREE_TEXT: "[]",
}

_DIFFICULTY_DESCRIPTIONS = {
    "Easy": "recall and direct application of a single idea",
    "Medium": "two-step reasoning or application in a familiar context",
    "Hard": "multi-step reasoning, unfamiliar contexts or synthesis of ideas",
}


def difficulty_label(difficulty: int) -> str:
    """Map a 1-100 difficulty to Easy, Medium or Hard."""
    if difficulty <= GENERATION_THRESHOLDS.easy_max:
        return "Easy"
    if difficulty >= GENERATION_THRESHOLDS.hard_min:
        return "Hard"
    return "Medium"


def build_generation_prompt(request: GenerationRequest, count: int, hint: Optional[str] = None) -> str:
    """Prompt asking for ``count`` questions matching ``request``."""
    label = difficulty_label(request.difficulty)
    qtype = request.type
    extra_lines = [line for line in (request.guidance, hint) if line]
    extra = "".join(f"- {line}\n" for line in extra_lines)
    return GENERATION_PROMPT.format(
        count=count,
        difficulty_label=label,
        difficulty=request.difficulty,
        difficulty_description=_DIFFICULTY_DESCRIPTIONS[label],
        difficulty_key=label.lower(),
        type=qtype.value,
        type_description=_TYPE_DESCRIPTIONS[qtype],
        type_rules=_TYPE_RULES[qtype],
        options_example=_OPTIONS_EXAMPLES[qtype],
        correct_example=_CORRECT_EXAMPLES[qtype],
        topic=request.topic,
        subject=request.subject,
        grade=request.grade,
        extra=extra,
    )

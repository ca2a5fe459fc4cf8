"""
Prompt text for the extraction pipeline.

Two prompts are built here:
- the extraction prompt, sent once per chunk with the chunk PDF (and the
  answer key when supplied), asking for a JSON array of questions with
  image presence flags and a chunk-local page number;
- the localization prompt, sent once per page batch with a PDF of just
  those pages, asking for bounding boxes keyed by question identifier.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Sequence

EXTRACTION_PROMPT = """You are an exam parsing assistant. Analyse the uploaded PDF and return a structured JSON array.

Requirements:
- Identify every question in reading order.
- Supported types: mcq_single, mcq_multi, true_false, numeric, descriptive.
- Extract question text verbatim. Preserve mathematical notation exactly, writing LaTeX with escaped backslashes (\\\\frac, \\\\times).
- Each question must include an "options" array of {{"label": "A", "text": "..."}} objects; text may be empty when the option is purely graphical. Numeric and descriptive questions have no options.
- "page" is the 1-indexed page of THIS document (1 to {page_count}) on which the question starts.
- "images" flags which parts contain a diagram, figure or picture: "question" for the question body and one boolean per option under "options", in option order. Do not fabricate images; if unsure, use false.
- {answer_instruction}
- Numeric answers are a number or a range written "min to max".

Return ONLY a JSON array where every question follows this schema:
{{
  "id": "q1",
  "type": "mcq_single",
  "text": "...",
  "options": [{{"label": "A", "text": "..."}}],
  "correct": ["A"],
  "marks": 1,
  "negative_marks": 0,
  "page": 1,
  "images": {{"question": false, "options": [false]}}
}}"""

ANSWER_KEY_INSTRUCTION = (
    "An answer key PDF follows the question paper. Align the correct option labels "
    "(or numeric answers) in \"correct\"."
)
NO_ANSWER_KEY_INSTRUCTION = (
    "Fill \"correct\" only when the answer is marked on the paper itself; otherwise use an empty array."
)


LOCALIZATION_PROMPT = """You are locating images in an exam PDF of {page_count} page(s).

For each requested item below, find the diagram, figure or picture that belongs to it and return its bounding box.

Requested items:
{items}

Return ONLY a JSON object keyed by question id:
{{
  "<id>": {{
    "question": {{"page": 1, "x": 0.1, "y": 0.2, "width": 0.5, "height": 0.3}},
    "options": {{"<label>": {{"page": 1, "x": 0.1, "y": 0.6, "width": 0.2, "height": 0.1}}}}
  }}
}}

Rules:
- "page" is the 1-indexed page within THIS PDF (1 to {page_count}).
- x, y, width and height are fractions of the page (0 to 1), origin at the top-left corner.
- Box only the image itself, not the surrounding question text.
- Omit any item whose image you cannot find. Never guess coordinates."""


@dataclass(frozen=True)
class LocalizationItem:
    """One question whose images are requested in a localization call."""

    record_id: str
    page: int  # batch-local, 1-indexed
    question: bool
    option_labels: Sequence[str]
    excerpt: str

    def to_dict(self) -> dict:
        return {
            "id": self.record_id,
            "page": self.page,
            "question_image": self.question,
            "option_images": list(self.option_labels),
            "text": self.excerpt,
        }


def build_extraction_prompt(page_count: int, has_answer_key: bool) -> str:
    instruction = ANSWER_KEY_INSTRUCTION if has_answer_key else NO_ANSWER_KEY_INSTRUCTION
    return EXTRACTION_PROMPT.format(page_count=page_count, answer_instruction=instruction)


def build_localization_prompt(page_count: int, items: List[LocalizationItem]) -> str:
    lines = [json.dumps(item.to_dict(), ensure_ascii=False) for item in items]
    return LOCALIZATION_PROMPT.format(page_count=page_count, items="\n".join(lines))

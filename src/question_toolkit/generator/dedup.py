"""
Near-duplicate detection for generated questions.

Similarity is Jaccard over word sets: text is lower-cased, punctuation
removed, and words of two characters or fewer and common stop words are
dropped. Texts left with no words after that (numbers, short or stop
words only) are compared by their normalized text instead: equal is 1.0,
anything else 0.0. Two questions whose similarity exceeds the threshold
are duplicates; the first one seen is kept.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, List, Sequence, Tuple

from question_toolkit.common.thresholds import GENERATION_THRESHOLDS
from question_toolkit.core.models.records import CandidateRecord

STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "is", "at", "which", "on", "a", "an", "and", "or", "but", "if", "then",
    "else", "when", "what", "where", "how", "why", "who", "to", "from", "in", "of",
    "for", "with", "by", "about", "as", "into", "like", "through", "after", "over",
    "between", "out", "against", "during", "without", "before", "under", "around",
    "among",
})

_PUNCTUATION = re.compile(r"[^\w\s]")

# (word set, normalized text)
_Signature = Tuple[FrozenSet[str], str]


def tokenize(text: str, min_length: int = GENERATION_THRESHOLDS.min_token_length) -> FrozenSet[str]:
    """
    Word set used for similarity.

    Example:
        >>> sorted(tokenize("What is the colour of the apple?"))
        ['apple', 'colour']
    """
    if not text:
        return frozenset()
    words = _PUNCTUATION.sub("", text.lower()).split()
    return frozenset(w for w in words if len(w) >= min_length and w not in STOP_WORDS)


def jaccard_similarity(first: str, second: str) -> float:
    """Intersection over union of the two word sets."""
    return _similarity(_signature(first), _signature(second))


def filter_near_duplicates(
    records: Iterable[CandidateRecord],
    threshold: float = GENERATION_THRESHOLDS.similarity_threshold,
) -> List[CandidateRecord]:
    """
    Keep records in order, dropping any whose similarity to an already
    kept record exceeds ``threshold``.

    The output never contains a pair with similarity above the threshold,
    and never grows: ``len(output) <= len(input)``.
    """
    kept: List[CandidateRecord] = []
    kept_signatures: List[_Signature] = []
    for record in records:
        signature = _signature(record.text)
        if any(_similarity(signature, other) > threshold for other in kept_signatures):
            continue
        kept.append(record)
        kept_signatures.append(signature)
    return kept


def _signature(text: str) -> _Signature:
    normalized = " ".join(_PUNCTUATION.sub("", (text or "").lower()).split())
    return tokenize(text), normalized


def _similarity(a: _Signature, b: _Signature) -> float:
    tokens_a, text_a = a
    tokens_b, text_b = b
    if not tokens_a or not tokens_b:
        return 1.0 if text_a and text_a == text_b else 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def max_pairwise_similarity(texts: Sequence[str]) -> float:
    """Highest similarity between any two texts (0.0 for fewer than two)."""
    sets = [_signature(t) for t in texts]
    best = 0.0
    for i in range(len(sets)):
        for j in range(i + 1, len(sets)):
            best = max(best, _similarity(sets[i], sets[j]))
    return best

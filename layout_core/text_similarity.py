"""
Text Similarity Module
Edit-distance based string comparison used by the matchers and the similarity aggregator.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable

import numpy as np

PARTIAL_MATCH_THRESHOLD = 0.8
DISTANCE_SCALE = 50


def levenshtein_distance(s1: str, s2: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)
    # Keep the shorter string on the inner axis
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    # Code points straight from the str; lone surrogates from truncated captures cannot be encoded
    target = np.fromiter(map(ord, s2), dtype=np.uint32, count=len(s2))
    previous = np.arange(len(s2) + 1, dtype=np.int64)
    for i, ch in enumerate(s1, start=1):
        code = ord(ch)
        current = np.empty_like(previous)
        current[0] = i
        substitution = previous[:-1] + (target != code)
        deletion = previous[1:] + 1
        best = np.minimum(substitution, deletion)
        # Insertions depend on the cell to the left, so they are resolved sequentially
        for j in range(1, len(s2) + 1):
            left = current[j - 1] + 1
            current[j] = left if left < best[j - 1] else best[j - 1]
        previous = current
    return int(previous[-1])


def text_similarity(s1: str, s2: str) -> float:
    """1 - distance / longest length; two empty strings are identical."""
    s1 = s1 or ''
    s2 = s2 or ''
    if not s1 and not s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    return 1.0 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    text = (text or '').lower()
    text = re.sub(r'[^\w\s]', '', text)
    return re.sub(r'\s+', ' ', text).strip()


def texts_equivalent(s1: str, s2: str) -> bool:
    return normalize_text(s1) == normalize_text(s2)


@dataclass
class TextSimilarityMetrics:
    exact_matches: int = 0
    partial_matches: int = 0
    total_texts: int = 0
    average_levenshtein_distance: float = 0.0

    @property
    def score(self) -> float:
        if self.total_texts == 0:
            return 1.0
        exact_ratio = self.exact_matches / self.total_texts
        partial_ratio = (self.exact_matches + self.partial_matches) / self.total_texts
        distance_score = max(0.0, 1 - self.average_levenshtein_distance / DISTANCE_SCALE)
        return exact_ratio * 0.5 + partial_ratio * 0.3 + distance_score * 0.2

    def to_dict(self) -> Dict:
        return {
            'exact_matches': self.exact_matches,
            'partial_matches': self.partial_matches,
            'total_texts': self.total_texts,
            'average_levenshtein_distance': self.average_levenshtein_distance,
        }


def aggregate_text_metrics(correspondences: Iterable) -> TextSimilarityMetrics:
    """Exact/partial/edit-distance statistics over pairs where either side has text.

    Unmatched A nodes take part with an empty B text, so text that vanished
    counts against the score.
    """
    metrics = TextSimilarityMetrics()
    total_distance = 0
    for correspondence in correspondences:
        text_a = correspondence.node_a.text or ''
        text_b = (correspondence.node_b.text or '') if correspondence.node_b is not None else ''
        if not text_a and not text_b:
            continue
        metrics.total_texts += 1
        if text_a == text_b:
            metrics.exact_matches += 1
            continue
        if text_similarity(text_a, text_b) >= PARTIAL_MATCH_THRESHOLD:
            metrics.partial_matches += 1
        total_distance += levenshtein_distance(text_a, text_b)

    if metrics.total_texts:
        metrics.average_levenshtein_distance = total_distance / metrics.total_texts
    return metrics

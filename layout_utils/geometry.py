"""
Geometry Utilities Module
Small set and rectangle helpers shared by the matchers and analyzers.
"""

from layout_core.models import Rect


def jaccard_similarity(set1, set2) -> float:
    set1, set2 = set(set1), set(set2)
    if not set1 and not set2:
        return 1.0
    if not set1 or not set2:
        return 0.0
    return len(set1 & set2) / len(set1 | set2)


def token_jaccard(tokens1, tokens2) -> float:
    """Jaccard over class tokens; no tokens on either side scores 0."""
    if not tokens1 or not tokens2:
        return 0.0
    return jaccard_similarity(tokens1, tokens2)


def bucket(value: float, size: float = 5) -> float:
    """Round a coordinate to the nearest multiple of `size`, half away from zero."""
    scaled = value / size
    rounded = int(scaled + 0.5) if scaled >= 0 else -int(-scaled + 0.5)
    return rounded * size


def position_bucket(rect: Rect, size: float = 5) -> tuple:
    return (
        bucket(rect.x, size),
        bucket(rect.y, size),
        bucket(rect.width, size),
        bucket(rect.height, size),
    )


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))

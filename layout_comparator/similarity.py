"""
Similarity Aggregator Module
Scores two layout summaries on coordinate, accessibility, text and text-length similarity.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from layout_core.models import Correspondence, LayoutSummary, MatchResult
from layout_core.node_matcher import NodeMatcher
from layout_core.text_similarity import TextSimilarityMetrics, aggregate_text_metrics

logger = logging.getLogger(__name__)

POSITION_SCALE = 50.0
SIZE_SCALE = 30.0
LENGTH_DIFFERENCE_SCALE = 20.0

WEIGHTS = {
    'coordinate': 0.3,
    'accessibility': 0.2,
    'text': 0.3,
    'text_length': 0.2,
}


@dataclass
class CoordinateDetails:
    matched_nodes: int = 0
    total_nodes: int = 0
    average_position_delta: Dict[str, float] = field(default_factory=lambda: {'x': 0.0, 'y': 0.0})
    average_size_delta: Dict[str, float] = field(default_factory=lambda: {'width': 0.0, 'height': 0.0})
    position_score: float = 1.0
    size_score: float = 1.0
    match_ratio: float = 1.0

    def to_dict(self) -> Dict:
        return {
            'matched_nodes': self.matched_nodes,
            'total_nodes': self.total_nodes,
            'average_position_delta': dict(self.average_position_delta),
            'average_size_delta': dict(self.average_size_delta),
            'position_score': self.position_score,
            'size_score': self.size_score,
            'match_ratio': self.match_ratio,
        }


@dataclass
class AccessibilityDetails:
    matched_roles: int = 0
    total_roles: int = 0
    matched_labels: int = 0
    total_labels: int = 0
    matched_states: int = 0
    total_states: int = 0

    def to_dict(self) -> Dict:
        return {
            'matched_roles': self.matched_roles,
            'total_roles': self.total_roles,
            'matched_labels': self.matched_labels,
            'total_labels': self.total_labels,
            'matched_states': self.matched_states,
            'total_states': self.total_states,
        }


# Text details are the shared text metrics record
TextDetails = TextSimilarityMetrics


@dataclass
class TextLengthDetails:
    total_length_a: int = 0
    total_length_b: int = 0
    length_ratio: float = 1.0
    average_length_difference: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'total_length_a': self.total_length_a,
            'total_length_b': self.total_length_b,
            'length_ratio': self.length_ratio,
            'average_length_difference': self.average_length_difference,
        }


@dataclass
class SimilarityResult:
    """Overall similarity is a fixed convex combination of the four sub-scores."""

    overall_similarity: float
    coordinate_similarity: float
    accessibility_similarity: float
    text_similarity: float
    text_length_similarity: float
    coordinate_details: CoordinateDetails = field(default_factory=CoordinateDetails)
    accessibility_details: AccessibilityDetails = field(default_factory=AccessibilityDetails)
    text_details: TextDetails = field(default_factory=TextDetails)
    text_length_details: TextLengthDetails = field(default_factory=TextLengthDetails)
    match_result: Optional[MatchResult] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict:
        return {
            'overall_similarity': self.overall_similarity,
            'coordinate_similarity': self.coordinate_similarity,
            'accessibility_similarity': self.accessibility_similarity,
            'text_similarity': self.text_similarity,
            'text_length_similarity': self.text_length_similarity,
            'details': {
                'coordinate': self.coordinate_details.to_dict(),
                'accessibility': self.accessibility_details.to_dict(),
                'text': self.text_details.to_dict(),
                'text_length': self.text_length_details.to_dict(),
            },
        }


class SimilarityAggregator:
    def __init__(self, matcher: Optional[NodeMatcher] = None):
        self.matcher = matcher or NodeMatcher()

    def similarity(self, summary_a: LayoutSummary, summary_b: LayoutSummary) -> SimilarityResult:
        """Compare two summaries; a single matcher run feeds every dimension."""
        logger.info(f"Comparing layouts: {len(summary_a.nodes)} vs {len(summary_b.nodes)} nodes")
        match_result = self.matcher.match(summary_a.nodes, summary_b.nodes)
        correspondences = match_result.correspondences

        coordinate, coordinate_details = self.coordinate_similarity(
            match_result, len(summary_a.nodes), len(summary_b.nodes))
        accessibility, accessibility_details = self.accessibility_similarity(correspondences)
        text_details = aggregate_text_metrics(correspondences)
        text = text_details.score
        text_length, text_length_details = self.text_length_similarity(summary_a, summary_b, correspondences)

        overall = (coordinate * WEIGHTS['coordinate'] +
                   accessibility * WEIGHTS['accessibility'] +
                   text * WEIGHTS['text'] +
                   text_length * WEIGHTS['text_length'])

        logger.info(f"Overall similarity: {overall:.2%}")
        return SimilarityResult(
            overall_similarity=overall,
            coordinate_similarity=coordinate,
            accessibility_similarity=accessibility,
            text_similarity=text,
            text_length_similarity=text_length,
            coordinate_details=coordinate_details,
            accessibility_details=accessibility_details,
            text_details=text_details,
            text_length_details=text_length_details,
            match_result=match_result,
        )

    def coordinate_similarity(self, match_result: MatchResult, count_a: int, count_b: int):
        pairs = match_result.matched_pairs()
        details = CoordinateDetails(matched_nodes=len(pairs), total_nodes=max(count_a, count_b))

        if pairs:
            dx = sum(abs(c.position_delta[0]) for c in pairs) / len(pairs)
            dy = sum(abs(c.position_delta[1]) for c in pairs) / len(pairs)
            dw = sum(abs(c.size_delta[0]) for c in pairs) / len(pairs)
            dh = sum(abs(c.size_delta[1]) for c in pairs) / len(pairs)
            details.average_position_delta = {'x': dx, 'y': dy}
            details.average_size_delta = {'width': dw, 'height': dh}
            details.position_score = max(0.0, 1 - math.hypot(dx, dy) / POSITION_SCALE)
            details.size_score = max(0.0, 1 - math.hypot(dw, dh) / SIZE_SCALE)

        if details.total_nodes:
            details.match_ratio = len(pairs) / details.total_nodes

        score = details.position_score * 0.5 + details.size_score * 0.3 + details.match_ratio * 0.2
        return score, details

    def accessibility_similarity(self, correspondences: List[Correspondence]):
        details = AccessibilityDetails()
        for correspondence in correspondences:
            if not correspondence.matched:
                continue
            a, b = correspondence.node_a, correspondence.node_b

            if a.role or b.role:
                details.total_roles += 1
                if a.role == b.role:
                    details.matched_roles += 1

            if a.label or b.label:
                details.total_labels += 1
                if a.label == b.label:
                    details.matched_labels += 1

            for key in set(a.state) | set(b.state):
                details.total_states += 1
                if a.state.get(key) == b.state.get(key):
                    details.matched_states += 1

        role_score = details.matched_roles / details.total_roles if details.total_roles else 1.0
        label_score = details.matched_labels / details.total_labels if details.total_labels else 1.0
        state_score = details.matched_states / details.total_states if details.total_states else 1.0
        score = role_score * 0.4 + label_score * 0.4 + state_score * 0.2
        return score, details

    def text_length_similarity(self, summary_a: LayoutSummary, summary_b: LayoutSummary,
                               correspondences: List[Correspondence]):
        total_a = sum(len(node.text or '') for node in summary_a.nodes)
        total_b = sum(len(node.text or '') for node in summary_b.nodes)

        difference = 0
        counted = 0
        for correspondence in correspondences:
            text_a = correspondence.node_a.text or ''
            text_b = (correspondence.node_b.text or '') if correspondence.matched else ''
            if text_a or text_b:
                difference += abs(len(text_a) - len(text_b))
                counted += 1
        average_difference = difference / counted if counted else 0.0

        if total_a == 0 and total_b == 0:
            length_ratio = 1.0
        else:
            length_ratio = min(total_a, total_b) / max(total_a, total_b)
        difference_score = max(0.0, 1 - average_difference / LENGTH_DIFFERENCE_SCALE)

        details = TextLengthDetails(
            total_length_a=total_a,
            total_length_b=total_b,
            length_ratio=length_ratio,
            average_length_difference=average_difference,
        )
        return length_ratio * 0.6 + difference_score * 0.4, details


def calculate_similarity(summary_a: LayoutSummary, summary_b: LayoutSummary) -> SimilarityResult:
    return SimilarityAggregator().similarity(summary_a, summary_b)


def similarity_report(result: SimilarityResult) -> str:
    """Plain-text breakdown of a similarity result."""
    coordinate = result.coordinate_details
    a11y = result.accessibility_details
    text = result.text_details
    length = result.text_length_details
    lines = [
        "Layout Similarity Report",
        "========================\n",
        f"Overall Similarity: {result.overall_similarity:.2%}\n",
        f"Coordinate: {result.coordinate_similarity:.2%}",
        f"- Matched nodes: {coordinate.matched_nodes}/{coordinate.total_nodes}",
        f"- Average position delta: x={coordinate.average_position_delta['x']:.1f}px "
        f"y={coordinate.average_position_delta['y']:.1f}px",
        f"- Average size delta: w={coordinate.average_size_delta['width']:.1f}px "
        f"h={coordinate.average_size_delta['height']:.1f}px",
        f"Accessibility: {result.accessibility_similarity:.2%}",
        f"- Roles: {a11y.matched_roles}/{a11y.total_roles}",
        f"- Labels: {a11y.matched_labels}/{a11y.total_labels}",
        f"- States: {a11y.matched_states}/{a11y.total_states}",
        f"Text: {result.text_similarity:.2%}",
        f"- Exact: {text.exact_matches}, partial: {text.partial_matches}, total: {text.total_texts}",
        f"- Average edit distance: {text.average_levenshtein_distance:.1f}",
        f"Text length: {result.text_length_similarity:.2%}",
        f"- Total length: {length.total_length_a} -> {length.total_length_b}",
        f"- Average length difference: {length.average_length_difference:.1f}",
    ]
    return "\n".join(lines)

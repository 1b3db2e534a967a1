"""
Stability Analyzer Module
Tracks per-node variation across repeated captures of the same page and scores stability.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from layout_comparator.similarity import SimilarityAggregator
from layout_core.accessibility_matcher import node_selector
from layout_core.errors import InsufficientSamplesError
from layout_core.models import LayoutSummary, Rect, SemanticType, SummarizedNode
from layout_utils.geometry import position_bucket

logger = logging.getLogger(__name__)

MIN_SAMPLES = 2
UNSTABLE_THRESHOLD = 0.9
MATCH_TOLERANCE = 50.0
POSITION_BUCKET = 5

NODE_WEIGHT = 0.7
GROUP_WEIGHT = 0.3

POSITION_WEIGHT = 0.4
TEXT_WEIGHT = 0.3
VISIBILITY_WEIGHT = 0.2
IMPORTANCE_WEIGHT = 0.1


@dataclass
class NodeVariation:
    """Values one base node showed across iterations."""

    node_id: str
    tag_name: str
    semantic_type: SemanticType
    selector: str
    class_name: Optional[str] = None
    iterations: int = 0
    positions: List[Tuple[float, ...]] = field(default_factory=list)
    rects: List[Rect] = field(default_factory=list)
    texts: List[Optional[str]] = field(default_factory=list)
    visibility: List[bool] = field(default_factory=list)
    importances: List[int] = field(default_factory=list)
    stability_score: float = 1.0
    is_unstable: bool = False

    @property
    def distinct_position_count(self) -> int:
        return len(set(self.positions))

    @property
    def distinct_text_count(self) -> int:
        return len(set(text or '' for text in self.texts))

    @property
    def distinct_visibility_count(self) -> int:
        return len(set(self.visibility))

    @property
    def distinct_importance_count(self) -> int:
        return len(set(self.importances))

    @property
    def text_observed(self) -> bool:
        return any(self.texts)

    @property
    def variation_types(self) -> List[str]:
        kinds = []
        if self.distinct_position_count > 1:
            kinds.append('position')
        if self.text_observed and self.distinct_text_count > 1:
            kinds.append('text')
        if self.distinct_visibility_count > 1:
            kinds.append('visibility')
        if self.distinct_importance_count > 1:
            kinds.append('importance')
        return kinds

    @property
    def max_position_delta(self) -> float:
        """Largest |dx| or |dy| between consecutive observations."""
        delta = 0.0
        for before, after in zip(self.rects, self.rects[1:]):
            delta = max(delta, abs(after.x - before.x), abs(after.y - before.y))
        return delta

    @property
    def text_dissimilarity(self) -> float:
        if not self.text_observed or not self.iterations:
            return 0.0
        return (self.distinct_text_count - 1) / self.iterations

    def to_dict(self) -> Dict:
        return {
            'node_id': self.node_id,
            'tag_name': self.tag_name,
            'semantic_type': self.semantic_type.value,
            'selector': self.selector,
            'class_name': self.class_name,
            'iterations': self.iterations,
            'distinct_positions': self.distinct_position_count,
            'distinct_texts': self.distinct_text_count,
            'distinct_visibility': self.distinct_visibility_count,
            'distinct_importance': self.distinct_importance_count,
            'variation_types': self.variation_types,
            'stability_score': self.stability_score,
            'is_unstable': self.is_unstable,
        }


@dataclass
class UnstableArea:
    selector: str
    reason: str
    variation_type: str

    def to_dict(self) -> Dict:
        return {'selector': self.selector, 'reason': self.reason, 'variation_type': self.variation_type}


@dataclass
class StabilityResult:
    iterations: int
    node_variations: List[NodeVariation]
    node_stability: float
    group_stability: Optional[float]
    overall_stability: float
    similarity_stability: float = 100.0
    stability_by_type: Dict[str, float] = field(default_factory=dict)
    unstable_areas: List[UnstableArea] = field(default_factory=list)

    @property
    def unstable_nodes(self) -> List[NodeVariation]:
        return [v for v in self.node_variations if v.is_unstable]

    @property
    def stable_count(self) -> int:
        return len(self.node_variations) - len(self.unstable_nodes)

    @property
    def average_text_dissimilarity(self) -> float:
        with_text = [v for v in self.node_variations if v.text_observed]
        if not with_text:
            return 0.0
        return sum(v.text_dissimilarity for v in with_text) / len(with_text)

    def to_dict(self) -> Dict:
        return {
            'iterations': self.iterations,
            'node_stability': self.node_stability,
            'group_stability': self.group_stability,
            'overall_stability': self.overall_stability,
            'similarity_stability': self.similarity_stability,
            'stable_nodes': self.stable_count,
            'total_nodes': len(self.node_variations),
            'stability_by_type': dict(self.stability_by_type),
            'unstable_areas': [area.to_dict() for area in self.unstable_areas],
            'node_variations': [v.to_dict() for v in self.node_variations],
        }


def node_stability_score(variation: NodeVariation) -> float:
    n = variation.iterations
    if n == 0:
        return 1.0
    position = 1 - (variation.distinct_position_count - 1) / n
    text = 1 - (variation.distinct_text_count - 1) / n if variation.text_observed else 1.0
    visibility = 1 - (variation.distinct_visibility_count - 1) / n
    importance = 1 - (variation.distinct_importance_count - 1) / n
    return (position * POSITION_WEIGHT + text * TEXT_WEIGHT +
            visibility * VISIBILITY_WEIGHT + importance * IMPORTANCE_WEIGHT)


class StabilityAnalyzer:
    def __init__(self, unstable_threshold: float = UNSTABLE_THRESHOLD,
                 match_tolerance: float = MATCH_TOLERANCE,
                 position_bucket: float = POSITION_BUCKET,
                 aggregator: Optional[SimilarityAggregator] = None):
        self.unstable_threshold = unstable_threshold
        self.match_tolerance = match_tolerance
        self.position_bucket = position_bucket
        self.aggregator = aggregator or SimilarityAggregator()

    def analyze(self, summaries: Sequence[LayoutSummary]) -> StabilityResult:
        """Analyze N >= 2 captures of one page; the first capture defines the node set."""
        summaries = list(summaries)
        if len(summaries) < MIN_SAMPLES:
            raise InsufficientSamplesError(len(summaries), MIN_SAMPLES)
        logger.info(f"Analyzing stability across {len(summaries)} iterations")

        base = summaries[0]
        matches = [self.match_iteration(base.nodes, summary) for summary in summaries[1:]]
        variations = [self._track_node(node, summaries, matches) for node in base.nodes]
        for variation in variations:
            variation.stability_score = node_stability_score(variation)
            variation.is_unstable = self.is_unstable(variation.stability_score)

        unstable = [v for v in variations if v.is_unstable]
        node_stability = (len(variations) - len(unstable)) / len(variations) * 100 if variations else 100.0

        group_stability = None
        if any(summary.groups for summary in summaries):
            group_stability = self.group_stability(summaries)
            overall = node_stability * NODE_WEIGHT + group_stability * GROUP_WEIGHT
        else:
            overall = node_stability

        similarity_stability = self.similarity_stability(summaries)

        logger.info(f"Stability: node={node_stability:.1f}% overall={overall:.1f}% "
                    f"({len(unstable)}/{len(variations)} unstable)")
        return StabilityResult(
            iterations=len(summaries),
            node_variations=variations,
            node_stability=node_stability,
            group_stability=group_stability,
            overall_stability=overall,
            similarity_stability=similarity_stability,
            stability_by_type=self._stability_by_type(variations),
            unstable_areas=self._unstable_areas(unstable),
        )

    def is_unstable(self, score: float) -> bool:
        # Scores that land on the threshold through float rounding count as unstable
        return score < self.unstable_threshold or math.isclose(score, self.unstable_threshold)

    def find_counterpart(self, node: SummarizedNode, summary: LayoutSummary,
                         claimed: Optional[Set[str]] = None) -> Optional[SummarizedNode]:
        """Same id with the same tag, else same tag and class within the match tolerance.

        Nodes whose ids are in `claimed` are skipped.
        """
        claimed = claimed or set()
        candidate = summary.node_by_id(node.node_id)
        if (candidate is not None and candidate.tag_name == node.tag_name
                and candidate.node_id not in claimed):
            return candidate
        for other in summary.nodes:
            if other.node_id in claimed:
                continue
            if other.tag_name != node.tag_name or other.class_name != node.class_name:
                continue
            if (abs(other.rect.x - node.rect.x) < self.match_tolerance
                    and abs(other.rect.y - node.rect.y) < self.match_tolerance):
                return other
        return None

    def match_iteration(self, base_nodes: Sequence[SummarizedNode],
                        summary: LayoutSummary) -> Dict[str, Optional[SummarizedNode]]:
        """Pair every base node with at most one node of `summary`, each claimed once.

        Id matches are claimed first so the positional fallback never steals them.
        """
        counterparts: Dict[str, Optional[SummarizedNode]] = {}
        claimed: Set[str] = set()
        for node in base_nodes:
            candidate = summary.node_by_id(node.node_id)
            if candidate is not None and candidate.tag_name == node.tag_name:
                counterparts[node.node_id] = candidate
                claimed.add(candidate.node_id)
        for node in base_nodes:
            if node.node_id in counterparts:
                continue
            other = self.find_counterpart(node, summary, claimed)
            counterparts[node.node_id] = other
            if other is not None:
                claimed.add(other.node_id)
        return counterparts

    def group_stability(self, summaries: Sequence[LayoutSummary]) -> float:
        """Percentage of groups that keep a same-type, nearby counterpart in the next capture."""
        ratios = []
        for current, following in zip(summaries, summaries[1:]):
            if not current.groups:
                ratios.append(1.0 if not following.groups else 0.0)
                continue
            kept = 0
            for group in current.groups:
                for other in following.groups:
                    if (other.type == group.type
                            and abs(other.bounds.x - group.bounds.x) < self.match_tolerance
                            and abs(other.bounds.y - group.bounds.y) < self.match_tolerance):
                        kept += 1
                        break
            ratios.append(kept / len(current.groups))
        return sum(ratios) / len(ratios) * 100

    def similarity_stability(self, summaries: Sequence[LayoutSummary]) -> float:
        scores = [self.aggregator.similarity(a, b).overall_similarity
                  for a, b in zip(summaries, summaries[1:])]
        return sum(scores) / len(scores) * 100

    def _track_node(self, node: SummarizedNode, summaries: Sequence[LayoutSummary],
                    matches: Sequence[Dict[str, Optional[SummarizedNode]]]) -> NodeVariation:
        variation = NodeVariation(
            node_id=node.node_id,
            tag_name=node.tag_name,
            semantic_type=node.semantic_type,
            selector=node_selector(node),
            class_name=node.class_name,
            iterations=len(summaries),
        )
        for index in range(len(summaries)):
            observed = node if index == 0 else matches[index - 1].get(node.node_id)
            if observed is None:
                # A node missing from a capture counts as not visible there
                variation.visibility.append(False)
                logger.debug(f"{node.node_id} not found in iteration {index}")
                continue
            variation.positions.append(position_bucket(observed.rect, self.position_bucket))
            variation.rects.append(observed.rect)
            variation.texts.append(observed.text)
            variation.visibility.append(observed.visible)
            variation.importances.append(observed.importance)
        return variation

    def _stability_by_type(self, variations: List[NodeVariation]) -> Dict[str, float]:
        totals = defaultdict(int)
        stable = defaultdict(int)
        for variation in variations:
            key = variation.semantic_type.value
            totals[key] += 1
            if not variation.is_unstable:
                stable[key] += 1
        return {key: stable[key] / totals[key] * 100 for key in totals}

    def _unstable_areas(self, unstable: List[NodeVariation]) -> List[UnstableArea]:
        areas = []
        for variation in unstable:
            kinds = variation.variation_types or ['unknown']
            for kind in kinds:
                areas.append(UnstableArea(
                    selector=variation.selector,
                    reason=f"{kind} varied across {variation.iterations} iterations "
                           f"(stability {variation.stability_score:.2f})",
                    variation_type=kind,
                ))
        return areas


def analyze_stability(summaries: Sequence[LayoutSummary]) -> StabilityResult:
    return StabilityAnalyzer().analyze(summaries)

"""
Node Matcher Module
Finds a greedy one-to-one correspondence between two summarized node lists.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from .models import Correspondence, MatchResult, SummarizedNode
from layout_utils.geometry import token_jaccard

logger = logging.getLogger(__name__)

ACCEPTANCE_THRESHOLD = 0.3
MAX_MATCH_DISTANCE = 200.0

TAG_WEIGHT = 0.3
SEMANTIC_WEIGHT = 0.2
CLASS_WEIGHT = 0.2
POSITION_WEIGHT = 0.3


class NodeMatcher:
    """Greedy matcher: A nodes claim their best unclaimed B node in input order.

    The assignment is order-sensitive on purpose. Threshold constants used by
    calibration were derived against this behaviour, so it must not be
    replaced with an optimal bipartite assignment.
    """

    def __init__(self, acceptance_threshold: float = ACCEPTANCE_THRESHOLD,
                 max_distance: float = MAX_MATCH_DISTANCE):
        self.acceptance_threshold = acceptance_threshold
        self.max_distance = max_distance

    def match(self, nodes_a: Sequence[SummarizedNode], nodes_b: Sequence[SummarizedNode]) -> MatchResult:
        token_cache: Dict[str, frozenset] = {}
        claimed = set()
        correspondences: List[Correspondence] = []

        for node_a in nodes_a:
            best_index = -1
            best_score = 0.0
            best_reasons: List[str] = []
            for index, node_b in enumerate(nodes_b):
                if index in claimed:
                    continue
                score, reasons = self.score(node_a, node_b, token_cache)
                if score > best_score:
                    best_index, best_score, best_reasons = index, score, reasons

            if best_index >= 0 and best_score > self.acceptance_threshold:
                claimed.add(best_index)
                correspondences.append(Correspondence(
                    node_a=node_a,
                    node_b=nodes_b[best_index],
                    confidence=best_score,
                    match_reasons=best_reasons,
                ))
            else:
                correspondences.append(Correspondence(node_a=node_a))

        unmatched_b = [node for index, node in enumerate(nodes_b) if index not in claimed]
        logger.debug(f"Matched {len(claimed)}/{len(nodes_a)} nodes, {len(unmatched_b)} unclaimed in B")
        return MatchResult(correspondences=correspondences, unmatched_b=unmatched_b)

    def score(self, node_a: SummarizedNode, node_b: SummarizedNode,
              token_cache: Dict[str, frozenset] = None) -> Tuple[float, List[str]]:
        """Weighted match score of two nodes and the signals that contributed."""
        if token_cache is None:
            token_cache = {}
        score = 0.0
        reasons = []

        if node_a.tag_name == node_b.tag_name:
            score += TAG_WEIGHT
            reasons.append('tag')
        if node_a.semantic_type == node_b.semantic_type:
            score += SEMANTIC_WEIGHT
            reasons.append('semantic-type')

        class_score = token_jaccard(self._tokens(node_a, token_cache), self._tokens(node_b, token_cache))
        if class_score > 0:
            score += class_score * CLASS_WEIGHT
            reasons.append(f"class={class_score:.2f}")

        distance = node_a.rect.distance_to(node_b.rect)
        position_score = max(0.0, 1 - distance / self.max_distance)
        if position_score > 0:
            score += position_score * POSITION_WEIGHT
            reasons.append(f"position={position_score:.2f}")

        return score, reasons

    def _tokens(self, node: SummarizedNode, cache: Dict[str, frozenset]) -> frozenset:
        key = node.class_name or ''
        if key not in cache:
            cache[key] = frozenset(key.split())
        return cache[key]


def match_nodes(nodes_a: Sequence[SummarizedNode], nodes_b: Sequence[SummarizedNode]) -> MatchResult:
    return NodeMatcher().match(nodes_a, nodes_b)

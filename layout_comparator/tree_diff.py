"""
Visual Tree Diff Module
Classifies matched and unmatched nodes into added/removed/modified/moved and tags change patterns.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from layout_core.accessibility_matcher import AccessibilityMatcher, GroupCorrespondence
from layout_core.models import Correspondence, LayoutSummary, SummarizedNode, STACKING_PROPERTIES
from .similarity import SimilarityAggregator, SimilarityResult

logger = logging.getLogger(__name__)

LAYOUT_SHIFT_MODIFIED_COUNT = 3
SMALL_SHIFT_LIMIT = 5.0

PATTERN_MICRO_SHIFT = '1px micro-shift'
PATTERN_SMALL_SHIFT = 'small shift'
PATTERN_LARGE_SHIFT = 'large shift'
PATTERN_STACKING = 'stacking order changed'
PATTERN_OVERFLOW = 'potential overflow'
PATTERN_STRUCTURAL = 'structural layout shift'

# (lower bound in percent, label), checked top to bottom
SEVERITY_BANDS = (
    (98, 'minimal'),
    (95, 'low'),
    (90, 'medium'),
    (80, 'high'),
)


@dataclass
class PropertyChange:
    property: str
    before: Any
    after: Any

    def to_dict(self) -> Dict:
        return {'property': self.property, 'before': self.before, 'after': self.after}


@dataclass
class NodeChange:
    type: str
    node_a: Optional[SummarizedNode] = None
    node_b: Optional[SummarizedNode] = None
    position_diff: float = 0.0
    changes: List[PropertyChange] = field(default_factory=list)

    @property
    def node(self) -> SummarizedNode:
        return self.node_b if self.node_b is not None else self.node_a

    def to_dict(self) -> Dict:
        return {
            'type': self.type,
            'node_a': self.node_a.node_id if self.node_a else None,
            'node_b': self.node_b.node_id if self.node_b else None,
            'tag_name': self.node.tag_name,
            'position_diff': self.position_diff,
            'changes': [change.to_dict() for change in self.changes],
        }


@dataclass
class TreeDiffResult:
    added: List[NodeChange] = field(default_factory=list)
    removed: List[NodeChange] = field(default_factory=list)
    modified: List[NodeChange] = field(default_factory=list)
    moved: List[NodeChange] = field(default_factory=list)
    unchanged: int = 0
    similarity: Optional[SimilarityResult] = None
    severity: str = 'minimal'
    patterns: List[str] = field(default_factory=list)
    group_correspondences: List[GroupCorrespondence] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified or self.moved)

    def changes(self) -> List[NodeChange]:
        return self.removed + self.added + self.modified + self.moved

    def to_dict(self) -> Dict:
        return {
            'added': [c.to_dict() for c in self.added],
            'removed': [c.to_dict() for c in self.removed],
            'modified': [c.to_dict() for c in self.modified],
            'moved': [c.to_dict() for c in self.moved],
            'unchanged': self.unchanged,
            'similarity': self.similarity.to_dict() if self.similarity else None,
            'severity': self.severity,
            'patterns': list(self.patterns),
            'group_correspondences': [g.to_dict() for g in self.group_correspondences],
        }


def severity_for(similarity_percent: float) -> str:
    for lower_bound, label in SEVERITY_BANDS:
        if similarity_percent >= lower_bound:
            return label
    return 'critical'


class VisualTreeDiffer:
    def __init__(self, move_epsilon: float = 0.0, size_epsilon: float = 0.0,
                 aggregator: Optional[SimilarityAggregator] = None,
                 group_matcher: Optional[AccessibilityMatcher] = None):
        self.move_epsilon = move_epsilon
        self.size_epsilon = size_epsilon
        self.aggregator = aggregator or SimilarityAggregator()
        self.group_matcher = group_matcher or AccessibilityMatcher()

    def diff(self, summary_a: LayoutSummary, summary_b: LayoutSummary,
             similarity: Optional[SimilarityResult] = None) -> TreeDiffResult:
        """Diff two summaries. A precomputed similarity result is reused when given."""
        if similarity is None:
            similarity = self.aggregator.similarity(summary_a, summary_b)
        match_result = similarity.match_result
        if match_result is None:
            match_result = self.aggregator.matcher.match(summary_a.nodes, summary_b.nodes)

        result = TreeDiffResult(similarity=similarity)
        for correspondence in match_result.correspondences:
            if not correspondence.matched:
                result.removed.append(NodeChange(type='removed', node_a=correspondence.node_a))
                continue
            change = self.classify_pair(correspondence)
            if change is None:
                result.unchanged += 1
            elif change.type == 'moved':
                result.moved.append(change)
            else:
                result.modified.append(change)

        for node in match_result.unmatched_b:
            result.added.append(NodeChange(type='added', node_b=node))

        result.severity = severity_for(similarity.overall_similarity * 100)
        result.patterns = self.detect_patterns(result, summary_b)
        result.group_correspondences = self.group_matcher.match_summaries(summary_a, summary_b)

        logger.info(f"Diff: {len(result.added)} added, {len(result.removed)} removed, "
                    f"{len(result.modified)} modified, {len(result.moved)} moved "
                    f"(severity {result.severity})")
        return result

    def classify_pair(self, correspondence: Correspondence) -> Optional[NodeChange]:
        """Return a moved/modified change for a matched pair, or None if identical."""
        a, b = correspondence.node_a, correspondence.node_b
        changes = []

        dw, dh = correspondence.size_delta
        if abs(dw) > self.size_epsilon:
            changes.append(PropertyChange('width', a.rect.width, b.rect.width))
        if abs(dh) > self.size_epsilon:
            changes.append(PropertyChange('height', a.rect.height, b.rect.height))
        if a.visible != b.visible:
            changes.append(PropertyChange('visible', a.visible, b.visible))
        if a.opacity != b.opacity:
            changes.append(PropertyChange('opacity', a.opacity, b.opacity))
        for prop in STACKING_PROPERTIES:
            if prop == 'opacity':
                continue
            before, after = a.styles.get(prop), b.styles.get(prop)
            if before != after:
                changes.append(PropertyChange(prop, before, after))

        distance = correspondence.distance
        moved = distance > self.move_epsilon
        if not changes and not moved:
            return None
        if moved:
            changes.insert(0, PropertyChange('position', (a.rect.x, a.rect.y), (b.rect.x, b.rect.y)))
        change_type = 'moved' if len(changes) == 1 and moved else 'modified'
        logger.debug(f"{a.node_id} -> {b.node_id}: {change_type} ({len(changes)} change(s))")
        return NodeChange(type=change_type, node_a=a, node_b=b,
                          position_diff=distance if moved else 0.0, changes=changes)

    def detect_patterns(self, result: TreeDiffResult, current: LayoutSummary) -> List[str]:
        """Advisory pattern tags; they never decide pass or fail."""
        patterns = []
        shifts = [c.position_diff for c in result.moved + result.modified if c.position_diff > 0]
        if any(shift <= 1 for shift in shifts):
            patterns.append(PATTERN_MICRO_SHIFT)
        if any(1 < shift <= SMALL_SHIFT_LIMIT for shift in shifts):
            patterns.append(PATTERN_SMALL_SHIFT)
        if any(shift > SMALL_SHIFT_LIMIT for shift in shifts):
            patterns.append(PATTERN_LARGE_SHIFT)

        if any(change.property in STACKING_PROPERTIES
               for node_change in result.modified for change in node_change.changes):
            patterns.append(PATTERN_STACKING)

        if any(node.is_scrollable or node.has_fixed_dimensions for node in current.nodes):
            patterns.append(PATTERN_OVERFLOW)

        if result.added or result.removed or len(result.modified) > LAYOUT_SHIFT_MODIFIED_COUNT:
            patterns.append(PATTERN_STRUCTURAL)
        return patterns


def diff_layouts(summary_a: LayoutSummary, summary_b: LayoutSummary) -> TreeDiffResult:
    return VisualTreeDiffer().diff(summary_a, summary_b)

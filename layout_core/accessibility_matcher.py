"""
Accessibility Matcher Module
Pairs node groups of two layouts by ARIA attributes, landmark tags, roles and structure.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .models import LayoutSummary, NodeGroup, Rect, SummarizedNode
from layout_utils.geometry import jaccard_similarity

logger = logging.getLogger(__name__)

ACCEPTANCE_THRESHOLD = 0.7
MAX_BOOSTED_CONFIDENCE = 0.98
STRUCTURE_WEIGHT = 0.1
STRUCTURE_DEPTH = 3
STRUCTURE_MIN_SIMILARITY = 0.8
SHIFT_THRESHOLD = 5

LANDMARK_TAGS = ('main', 'header', 'footer', 'nav', 'aside')
MODERATE_TAGS = ('article', 'section', 'form', 'dialog', 'figure')
UNIQUE_ROLES = ('main', 'banner', 'contentinfo', 'search', 'form')

SEMANTIC_TAGS = {
    'nav', 'main', 'header', 'footer', 'article', 'section', 'aside',
    'figure', 'figcaption', 'details', 'summary', 'dialog', 'menu',
    'form', 'fieldset', 'legend', 'label', 'output', 'progress', 'meter',
    'time', 'mark', 'address', 'blockquote', 'cite', 'code', 'pre',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
}


@dataclass
class GroupAttributes:
    """Accessibility attributes collected from the members of one group."""

    aria_label: Optional[str] = None
    aria_labelledby: Optional[str] = None
    aria_describedby: Optional[str] = None
    role: Optional[str] = None
    element_id: Optional[str] = None
    semantic_tag: Optional[str] = None
    first_class: Optional[str] = None
    first_tag: Optional[str] = None
    structure: List[str] = field(default_factory=list)


@dataclass
class GroupMatch:
    confidence: float
    match_reasons: List[str]
    identifier: Optional[str] = None


@dataclass
class GroupCorrespondence:
    group_a: NodeGroup
    group_b: NodeGroup
    confidence: float
    match_reasons: List[str] = field(default_factory=list)
    identifier: Optional[str] = None
    selector: str = ''

    @property
    def position_shift(self) -> tuple:
        return (self.group_b.bounds.x - self.group_a.bounds.x,
                self.group_b.bounds.y - self.group_a.bounds.y)

    @property
    def size_change(self) -> tuple:
        return (self.group_b.bounds.width - self.group_a.bounds.width,
                self.group_b.bounds.height - self.group_a.bounds.height)

    @property
    def is_shifted(self) -> bool:
        dx, dy = self.position_shift
        return abs(dx) > SHIFT_THRESHOLD or abs(dy) > SHIFT_THRESHOLD

    def to_dict(self) -> Dict:
        return {
            'group_a': self.group_a.group_id,
            'group_b': self.group_b.group_id,
            'confidence': self.confidence,
            'match_reasons': list(self.match_reasons),
            'identifier': self.identifier,
            'selector': self.selector,
            'position_shift': list(self.position_shift),
            'size_change': list(self.size_change),
        }


def extract_group_attributes(group: NodeGroup, summary: LayoutSummary) -> GroupAttributes:
    """Walk the group's members (and their descendants up to a fixed depth)."""
    attrs = GroupAttributes()
    members = [summary.node_by_id(node_id) for node_id in group.node_ids]
    stack = [(node, 0) for node in reversed(members) if node is not None]
    seen = set()

    while stack:
        node, depth = stack.pop()
        if node.node_id in seen:
            continue
        seen.add(node.node_id)
        tag = node.tag_name.lower()

        if tag in SEMANTIC_TAGS and attrs.semantic_tag is None:
            attrs.semantic_tag = tag
        if node.aria_label and attrs.aria_label is None:
            attrs.aria_label = node.aria_label
        if node.aria_labelledby and attrs.aria_labelledby is None:
            attrs.aria_labelledby = node.aria_labelledby
        if node.aria_describedby and attrs.aria_describedby is None:
            attrs.aria_describedby = node.aria_describedby
        if node.role and attrs.role is None:
            attrs.role = node.role
        if node.element_id and attrs.element_id is None:
            attrs.element_id = node.element_id
        if depth == 0:
            if attrs.first_tag is None:
                attrs.first_tag = tag
            if node.class_tokens and attrs.first_class is None:
                attrs.first_class = node.class_tokens[0]

        if depth < STRUCTURE_DEPTH:
            signature = f"{tag}[role={node.role}]" if node.role else tag
            if tag in SEMANTIC_TAGS:
                signature = f"<{signature}>"
            attrs.structure.append(signature)
            for child in reversed(summary.children_of(node.node_id)):
                stack.append((child, depth + 1))

    return attrs


def match_group_pair(attrs_a: GroupAttributes, attrs_b: GroupAttributes) -> Optional[GroupMatch]:
    """Confidence that two groups are the same region; None when nothing matches."""
    confidence = 0.0
    reasons = []
    identifier = None

    if attrs_a.aria_label and attrs_a.aria_label == attrs_b.aria_label:
        reasons.append(f'aria-label="{attrs_a.aria_label}"')
        confidence = 0.95
        identifier = f'aria-label="{attrs_a.aria_label}"'

    if attrs_a.aria_labelledby and attrs_a.aria_labelledby == attrs_b.aria_labelledby:
        reasons.append(f'aria-labelledby="{attrs_a.aria_labelledby}"')
        confidence = max(confidence, 0.92)
        identifier = identifier or f'aria-labelledby="{attrs_a.aria_labelledby}"'

    if attrs_a.aria_describedby and attrs_a.aria_describedby == attrs_b.aria_describedby:
        reasons.append(f'aria-describedby="{attrs_a.aria_describedby}"')
        confidence = max(confidence, 0.90)
        identifier = identifier or f'aria-describedby="{attrs_a.aria_describedby}"'

    if attrs_a.element_id and attrs_a.element_id == attrs_b.element_id:
        reasons.append(f'id="{attrs_a.element_id}"')
        confidence = max(confidence, 0.93)
        identifier = identifier or f"#{attrs_a.element_id}"

    tag_match = bool(attrs_a.semantic_tag) and attrs_a.semantic_tag == attrs_b.semantic_tag
    if tag_match:
        reasons.append(f'semantic-tag="{attrs_a.semantic_tag}"')
        if attrs_a.semantic_tag in LANDMARK_TAGS:
            tag_confidence = 0.90
        elif attrs_a.semantic_tag in MODERATE_TAGS:
            tag_confidence = 0.80
        else:
            tag_confidence = 0.70
        confidence = max(confidence, tag_confidence)
        identifier = identifier or attrs_a.semantic_tag

    role_match = bool(attrs_a.role) and attrs_a.role == attrs_b.role
    if role_match:
        reasons.append(f'role="{attrs_a.role}"')
        confidence = max(confidence, 0.88 if attrs_a.role in UNIQUE_ROLES else 0.75)
        identifier = identifier or f'role="{attrs_a.role}"'

    if tag_match and role_match:
        confidence = min(confidence * 1.1, MAX_BOOSTED_CONFIDENCE)
        reasons.append('semantic+role-match')

    if confidence > 0 and attrs_a.structure and attrs_b.structure:
        structural = jaccard_similarity(attrs_a.structure, attrs_b.structure)
        if structural > STRUCTURE_MIN_SIMILARITY:
            reasons.append(f"structural-similarity={structural:.2f}")
            confidence = confidence * (1 - STRUCTURE_WEIGHT) + structural * STRUCTURE_WEIGHT

    if confidence == 0:
        return None
    return GroupMatch(confidence=confidence, match_reasons=reasons, identifier=identifier)


def accessibility_selector(attrs: GroupAttributes) -> str:
    """Most specific CSS selector the group's accessibility attributes allow."""
    if attrs.element_id:
        return f"#{attrs.element_id}"
    if attrs.aria_label:
        return f'[aria-label="{attrs.aria_label}"]'
    if attrs.aria_labelledby:
        return f'[aria-labelledby="{attrs.aria_labelledby}"]'
    if attrs.semantic_tag and attrs.role:
        return f'{attrs.semantic_tag}[role="{attrs.role}"]'
    if attrs.semantic_tag in LANDMARK_TAGS:
        return attrs.semantic_tag
    if attrs.role:
        return f'[role="{attrs.role}"]'
    if attrs.semantic_tag:
        if attrs.first_class:
            return f"{attrs.semantic_tag}.{attrs.first_class}"
        return attrs.semantic_tag
    if attrs.first_class:
        return f".{attrs.first_class}"
    return attrs.first_tag or ''


def movement_vector(correspondence: GroupCorrespondence) -> Dict:
    """Centre-to-centre movement of a matched group; angle in degrees."""
    start = _centre(correspondence.group_a.bounds)
    end = _centre(correspondence.group_b.bounds)
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    return {
        'from': start,
        'to': end,
        'distance': math.hypot(dx, dy),
        'angle': math.degrees(math.atan2(dy, dx)),
    }


def _centre(rect: Rect) -> tuple:
    return (rect.x + rect.width / 2, rect.y + rect.height / 2)


class AccessibilityMatcher:
    def __init__(self, acceptance_threshold: float = ACCEPTANCE_THRESHOLD):
        self.acceptance_threshold = acceptance_threshold

    def match_groups(self,
                     groups_a: Sequence[NodeGroup], summary_a: LayoutSummary,
                     groups_b: Sequence[NodeGroup], summary_b: LayoutSummary) -> List[GroupCorrespondence]:
        attrs_a = [extract_group_attributes(group, summary_a) for group in groups_a]
        attrs_b = [extract_group_attributes(group, summary_b) for group in groups_b]
        claimed = set()
        correspondences = []

        for group_a, a in zip(groups_a, attrs_a):
            best: Optional[GroupMatch] = None
            best_index = -1
            for index, b in enumerate(attrs_b):
                if index in claimed:
                    continue
                match = match_group_pair(a, b)
                if match is not None and (best is None or match.confidence > best.confidence):
                    best, best_index = match, index

            if best is not None and best.confidence > self.acceptance_threshold:
                claimed.add(best_index)
                correspondences.append(GroupCorrespondence(
                    group_a=group_a,
                    group_b=groups_b[best_index],
                    confidence=best.confidence,
                    match_reasons=best.match_reasons,
                    identifier=best.identifier,
                    selector=accessibility_selector(a),
                ))

        logger.debug(f"Accessibility matching paired {len(correspondences)}/{len(groups_a)} groups")
        return correspondences

    def match_summaries(self, summary_a: LayoutSummary, summary_b: LayoutSummary) -> List[GroupCorrespondence]:
        return self.match_groups(summary_a.groups, summary_a, summary_b.groups, summary_b)


def node_selector(node: SummarizedNode) -> str:
    """Class- or id-derived selector for a single node."""
    if node.element_id:
        return f"#{node.element_id}"
    if node.class_tokens:
        return f"{node.tag_name}." + '.'.join(node.class_tokens)
    return node.tag_name

"""
Layout Summarizer Module
Flattens a RawElement tree into semantically classified nodes and spatial groups.
"""

import logging
import math
import re
from collections import Counter
from typing import Iterable, List, Optional, Union

from .errors import InputError
from .models import (
    LayoutStatistics,
    LayoutSummary,
    NodeGroup,
    RawElement,
    SemanticType,
    SummarizedNode,
    Viewport,
    MAX_TEXT_LENGTH,
)

logger = logging.getLogger(__name__)

GROUP_RADIUS = 100.0

HEADING_TAG = re.compile(r'^h[1-6]$')

# Ordered classification rules; the first matching rule wins.
# Each rule: (semantic type, tags, roles, class substrings)
SEMANTIC_RULES = (
    (SemanticType.HEADING, (), ('heading',), ()),
    (SemanticType.NAVIGATION, ('nav',), ('navigation',), ('nav', 'menu')),
    (SemanticType.INTERACTIVE, ('button', 'a', 'input', 'textarea', 'select', 'form'),
     ('button', 'link', 'textbox'), ()),
    (SemanticType.MEDIA, ('img', 'video', 'audio', 'svg', 'picture'), ('img',), ()),
    (SemanticType.LIST, ('ul', 'ol', 'li'), ('list', 'listitem'), ()),
    (SemanticType.TABLE, ('table', 'thead', 'tbody', 'tr', 'td', 'th'), ('table',), ()),
    (SemanticType.CONTENT, ('p', 'article', 'section', 'main'), ('article', 'main'), ()),
)

BASE_IMPORTANCE = {
    SemanticType.HEADING: 80,
    SemanticType.NAVIGATION: 70,
    SemanticType.INTERACTIVE: 60,
    SemanticType.CONTENT: 50,
    SemanticType.MEDIA: 40,
    SemanticType.LIST: 30,
    SemanticType.TABLE: 30,
    SemanticType.STRUCTURAL: 20,
}

INTERACTIVE_TAGS = {'a', 'button', 'input', 'select', 'textarea'}
INTERACTIVE_ROLES = {'button', 'link', 'textbox', 'checkbox', 'radio'}


def classify(element: RawElement) -> SemanticType:
    """Return the semantic type of an element using the ordered rule list."""
    tag = element.tag_name.lower()
    role = (element.accessibility.role or '').lower()
    class_name = (element.class_name or '').lower()

    if HEADING_TAG.match(tag):
        return SemanticType.HEADING
    for semantic_type, tags, roles, class_substrings in SEMANTIC_RULES:
        if tag in tags or role in roles:
            return semantic_type
        if any(sub in class_name for sub in class_substrings):
            return semantic_type
    if element.text:
        return SemanticType.CONTENT
    return SemanticType.STRUCTURAL


def importance_score(element: RawElement, semantic_type: SemanticType, viewport: Viewport) -> int:
    """Score how prominent an element is on the page, 0..100."""
    score = float(BASE_IMPORTANCE[semantic_type])

    area_ratio = min(element.rect.area / viewport.area, 1.0)
    score += max(area_ratio, 0.0) * 20

    score += min(1.0, max(0.0, 1 - element.rect.y / viewport.height)) * 10

    if element.element_id:
        score += 5
    tokens = (element.class_name or '').lower().split()
    if any('primary' in token for token in tokens):
        score += 5
    if any('main' in token for token in tokens):
        score += 5

    return int(min(100, max(0, math.floor(score + 0.5))))


class LayoutSummarizer:
    def __init__(self, group_radius: float = GROUP_RADIUS, max_text_length: int = MAX_TEXT_LENGTH):
        self.group_radius = group_radius
        self.max_text_length = max_text_length

    def summarize(self,
                  root: Union[RawElement, Iterable[RawElement], None],
                  viewport: Viewport) -> LayoutSummary:
        """Summarize a captured element tree taken under `viewport`."""
        self._check_viewport(viewport)
        roots = self._roots(root)
        logger.info(f"Summarizing {len(roots)} root element(s) for viewport "
                    f"{viewport.width}x{viewport.height}")

        nodes: List[SummarizedNode] = []
        # Explicit stack keeps pre-order without recursion limits on deep pages
        stack = [(element, None, 0) for element in reversed(roots)]
        while stack:
            element, parent_id, depth = stack.pop()
            node = self._summarize_element(element, len(nodes), parent_id, depth, viewport)
            nodes.append(node)
            for child in reversed(element.children):
                stack.append((child, node.node_id, depth + 1))

        groups = self.group_nodes(nodes)
        statistics = self._statistics(nodes)
        logger.info(f"Summary complete: {len(nodes)} nodes, {len(groups)} groups")
        return LayoutSummary(nodes=nodes, groups=groups, viewport=viewport, statistics=statistics)

    def group_nodes(self, nodes: List[SummarizedNode]) -> List[NodeGroup]:
        """Greedy single-pass clustering of nodes around the first node of each group."""
        groups: List[NodeGroup] = []
        for node in nodes:
            target: Optional[NodeGroup] = None
            for group in groups:
                if group.type != node.semantic_type:
                    continue
                if node.rect.distance_to(group.seed) < self.group_radius:
                    target = group
                    break
            if target is None:
                groups.append(NodeGroup(
                    group_id=f"group_{len(groups)}",
                    type=node.semantic_type,
                    seed=node.rect,
                    bounds=node.rect,
                    node_ids=[node.node_id],
                ))
            else:
                target.node_ids.append(node.node_id)
                target.bounds = target.bounds.union(node.rect)
        return groups

    def _summarize_element(self, element: RawElement, index: int, parent_id: Optional[str],
                           depth: int, viewport: Viewport) -> SummarizedNode:
        if not isinstance(element, RawElement):
            raise InputError(f"Expected RawElement, got {type(element).__name__}")
        if element.rect.width < 0 or element.rect.height < 0:
            raise InputError(f"<{element.tag_name}> has a negative size")

        semantic_type = classify(element)
        importance = importance_score(element, semantic_type, viewport)
        a11y = element.accessibility
        text = element.text[:self.max_text_length] if element.text else None

        logger.debug(f"node_{index}: <{element.tag_name}> {semantic_type.value} importance={importance}")
        return SummarizedNode(
            node_id=f"node_{index}",
            tag_name=element.tag_name.lower(),
            rect=element.rect,
            semantic_type=semantic_type,
            importance=importance,
            child_count=len(element.children),
            element_id=element.element_id,
            class_name=element.class_name,
            role=a11y.role,
            aria_label=a11y.aria_label,
            aria_labelledby=a11y.aria_labelledby,
            aria_describedby=a11y.aria_describedby,
            text=text,
            visible=element.visible,
            opacity=element.opacity,
            hidden=bool(a11y.aria_hidden),
            interactive=self._is_interactive(element),
            focusable=self._is_focusable(element),
            state=a11y.state(),
            styles=dict(element.styles),
            is_scrollable=element.is_scrollable,
            has_fixed_dimensions=element.has_fixed_dimensions,
            parent_id=parent_id,
            depth=depth,
        )

    def _is_interactive(self, element: RawElement) -> bool:
        role = element.accessibility.role
        return (element.tag_name in INTERACTIVE_TAGS
                or (role is not None and role in INTERACTIVE_ROLES)
                or element.accessibility.tab_index is not None)

    def _is_focusable(self, element: RawElement) -> bool:
        if element.accessibility.tab_index is not None:
            return element.accessibility.tab_index >= 0
        return element.tag_name in INTERACTIVE_TAGS

    def _statistics(self, nodes: List[SummarizedNode]) -> LayoutStatistics:
        by_type = Counter(node.semantic_type.value for node in nodes)
        by_role = Counter(node.role for node in nodes if node.role)
        average = sum(node.importance for node in nodes) / len(nodes) if nodes else 0.0
        return LayoutStatistics(
            total_nodes=len(nodes),
            by_semantic_type=dict(by_type),
            by_role=dict(by_role),
            average_importance=average,
        )

    def _check_viewport(self, viewport: Viewport) -> None:
        if not isinstance(viewport, Viewport):
            raise InputError(f"Expected Viewport, got {type(viewport).__name__}")
        if viewport.width <= 0 or viewport.height <= 0:
            raise InputError(f"Viewport must have a positive area, got {viewport.width}x{viewport.height}")

    def _roots(self, root) -> List[RawElement]:
        if root is None:
            return []
        if isinstance(root, RawElement):
            return [root]
        try:
            roots = list(root)
        except TypeError as e:
            raise InputError(f"Cannot summarize {type(root).__name__}") from e
        for item in roots:
            if not isinstance(item, RawElement):
                raise InputError(f"Expected RawElement, got {type(item).__name__}")
        return roots


def summarize_layout(root, viewport: Viewport) -> LayoutSummary:
    return LayoutSummarizer().summarize(root, viewport)

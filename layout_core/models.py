"""
Layout Models Module
Data model shared by the summarizer, matchers, comparators and calibration.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

MAX_TEXT_LENGTH = 100

# Computed style properties that affect stacking and painting order
STACKING_PROPERTIES = ('z-index', 'position', 'transform', 'opacity')


class SemanticType(str, Enum):
    """Coarse role classification of a summarized node."""

    HEADING = 'heading'
    NAVIGATION = 'navigation'
    INTERACTIVE = 'interactive'
    MEDIA = 'media'
    LIST = 'list'
    TABLE = 'table'
    CONTENT = 'content'
    STRUCTURAL = 'structural'


@dataclass(frozen=True)
class Rect:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height

    def distance_to(self, other: 'Rect') -> float:
        """Euclidean distance between the top-left corners of two rects."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def union(self, other: 'Rect') -> 'Rect':
        min_x = min(self.x, other.x)
        min_y = min(self.y, other.y)
        max_x = max(self.x + self.width, other.x + other.width)
        max_y = max(self.y + self.height, other.y + other.height)
        return Rect(min_x, min_y, max_x - min_x, max_y - min_y)

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Rect':
        return cls(
            x=float(data.get('x', 0)),
            y=float(data.get('y', 0)),
            width=float(data.get('width', 0)),
            height=float(data.get('height', 0)),
        )


@dataclass(frozen=True)
class Viewport:
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_dict(self) -> Dict[str, float]:
        return {'width': self.width, 'height': self.height}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Viewport':
        return cls(width=float(data.get('width', 0)), height=float(data.get('height', 0)))


@dataclass
class AccessibilityInfo:
    role: Optional[str] = None
    aria_label: Optional[str] = None
    aria_labelledby: Optional[str] = None
    aria_describedby: Optional[str] = None
    aria_hidden: Optional[bool] = None
    aria_expanded: Optional[bool] = None
    aria_selected: Optional[bool] = None
    aria_checked: Optional[bool] = None
    aria_disabled: Optional[bool] = None
    aria_value_now: Optional[float] = None
    aria_value_min: Optional[float] = None
    aria_value_max: Optional[float] = None
    aria_value_text: Optional[str] = None
    tab_index: Optional[int] = None

    def state(self) -> Dict[str, Any]:
        """Collect the aria states that are actually set."""
        state = {}
        if self.aria_expanded is not None:
            state['expanded'] = self.aria_expanded
        if self.aria_selected is not None:
            state['selected'] = self.aria_selected
        if self.aria_checked is not None:
            state['checked'] = self.aria_checked
        if self.aria_disabled is not None:
            state['disabled'] = self.aria_disabled
        if self.aria_value_now is not None:
            state['value'] = (
                self.aria_value_now,
                self.aria_value_min,
                self.aria_value_max,
                self.aria_value_text,
            )
        return state


@dataclass
class RawElement:
    """One element of an extracted page tree. Parents own their children."""

    tag_name: str
    rect: Rect
    element_id: Optional[str] = None
    class_name: Optional[str] = None
    text: Optional[str] = None
    visible: bool = True
    opacity: float = 1.0
    accessibility: AccessibilityInfo = field(default_factory=AccessibilityInfo)
    attributes: Dict[str, Any] = field(default_factory=dict)
    styles: Dict[str, str] = field(default_factory=dict)
    is_scrollable: bool = False
    has_fixed_dimensions: bool = False
    children: List['RawElement'] = field(default_factory=list)

    def __post_init__(self):
        if self.text is not None and len(self.text) > MAX_TEXT_LENGTH:
            self.text = self.text[:MAX_TEXT_LENGTH]


@dataclass(frozen=True)
class SummarizedNode:
    node_id: str
    tag_name: str
    rect: Rect
    semantic_type: SemanticType
    importance: int
    child_count: int = 0
    element_id: Optional[str] = None
    class_name: Optional[str] = None
    role: Optional[str] = None
    aria_label: Optional[str] = None
    aria_labelledby: Optional[str] = None
    aria_describedby: Optional[str] = None
    text: Optional[str] = None
    visible: bool = True
    opacity: float = 1.0
    hidden: bool = False
    interactive: bool = False
    focusable: bool = False
    state: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    styles: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    is_scrollable: bool = False
    has_fixed_dimensions: bool = False
    parent_id: Optional[str] = None
    depth: int = 0

    @property
    def label(self) -> Optional[str]:
        """Accessible label: aria-label, falling back to the leading text."""
        if self.aria_label:
            return self.aria_label
        if self.text:
            return self.text[:MAX_TEXT_LENGTH]
        return None

    @property
    def class_tokens(self) -> Tuple[str, ...]:
        if not self.class_name:
            return ()
        return tuple(self.class_name.split())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.node_id,
            'tag_name': self.tag_name,
            'rect': self.rect.to_dict(),
            'semantic_type': self.semantic_type.value,
            'importance': self.importance,
            'child_count': self.child_count,
            'element_id': self.element_id,
            'class_name': self.class_name,
            'role': self.role,
            'aria_label': self.aria_label,
            'aria_labelledby': self.aria_labelledby,
            'aria_describedby': self.aria_describedby,
            'text': self.text,
            'visible': self.visible,
            'opacity': self.opacity,
            'hidden': self.hidden,
            'interactive': self.interactive,
            'focusable': self.focusable,
            'state': {k: list(v) if isinstance(v, tuple) else v for k, v in self.state.items()},
            'styles': dict(self.styles),
            'is_scrollable': self.is_scrollable,
            'has_fixed_dimensions': self.has_fixed_dimensions,
            'parent_id': self.parent_id,
            'depth': self.depth,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SummarizedNode':
        return cls(
            node_id=data['id'],
            tag_name=data['tag_name'],
            rect=Rect.from_dict(data.get('rect', {})),
            semantic_type=SemanticType(data['semantic_type']),
            importance=int(data.get('importance', 0)),
            child_count=int(data.get('child_count', 0)),
            element_id=data.get('element_id'),
            class_name=data.get('class_name'),
            role=data.get('role'),
            aria_label=data.get('aria_label'),
            aria_labelledby=data.get('aria_labelledby'),
            aria_describedby=data.get('aria_describedby'),
            text=data.get('text'),
            visible=data.get('visible', True),
            opacity=float(data.get('opacity', 1.0)),
            hidden=data.get('hidden', False),
            interactive=data.get('interactive', False),
            focusable=data.get('focusable', False),
            state={k: tuple(v) if isinstance(v, list) else v
                   for k, v in data.get('state', {}).items()},
            styles=dict(data.get('styles', {})),
            is_scrollable=data.get('is_scrollable', False),
            has_fixed_dimensions=data.get('has_fixed_dimensions', False),
            parent_id=data.get('parent_id'),
            depth=int(data.get('depth', 0)),
        )


@dataclass
class NodeGroup:
    group_id: str
    type: SemanticType
    seed: Rect
    bounds: Rect
    node_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.group_id,
            'type': self.type.value,
            'seed': self.seed.to_dict(),
            'bounds': self.bounds.to_dict(),
            'node_ids': list(self.node_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NodeGroup':
        return cls(
            group_id=data['id'],
            type=SemanticType(data['type']),
            seed=Rect.from_dict(data.get('seed', data.get('bounds', {}))),
            bounds=Rect.from_dict(data.get('bounds', {})),
            node_ids=list(data.get('node_ids', [])),
        )


@dataclass
class LayoutStatistics:
    total_nodes: int = 0
    by_semantic_type: Dict[str, int] = field(default_factory=dict)
    by_role: Dict[str, int] = field(default_factory=dict)
    average_importance: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_nodes': self.total_nodes,
            'by_semantic_type': dict(self.by_semantic_type),
            'by_role': dict(self.by_role),
            'average_importance': self.average_importance,
        }


@dataclass
class LayoutSummary:
    """Flattened, classified view of one page capture. Read-only downstream."""

    nodes: List[SummarizedNode]
    groups: List[NodeGroup]
    viewport: Viewport
    statistics: LayoutStatistics = field(default_factory=LayoutStatistics)

    def node_by_id(self, node_id: str) -> Optional[SummarizedNode]:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        return None

    def children_of(self, node_id: str) -> List[SummarizedNode]:
        return [node for node in self.nodes if node.parent_id == node_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [node.to_dict() for node in self.nodes],
            'groups': [group.to_dict() for group in self.groups],
            'viewport': self.viewport.to_dict(),
            'statistics': self.statistics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LayoutSummary':
        stats = data.get('statistics', {})
        return cls(
            nodes=[SummarizedNode.from_dict(n) for n in data.get('nodes', [])],
            groups=[NodeGroup.from_dict(g) for g in data.get('groups', [])],
            viewport=Viewport.from_dict(data.get('viewport', {})),
            statistics=LayoutStatistics(
                total_nodes=int(stats.get('total_nodes', 0)),
                by_semantic_type=dict(stats.get('by_semantic_type', {})),
                by_role=dict(stats.get('by_role', {})),
                average_importance=float(stats.get('average_importance', 0.0)),
            ),
        )


@dataclass
class Correspondence:
    """A claimed pairing between a node of snapshot A and one of snapshot B."""

    node_a: Any
    node_b: Optional[Any] = None
    confidence: float = 0.0
    match_reasons: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.node_b is not None

    @property
    def position_delta(self) -> Tuple[float, float]:
        if self.node_b is None:
            return (0.0, 0.0)
        a, b = _rect_of(self.node_a), _rect_of(self.node_b)
        return (b.x - a.x, b.y - a.y)

    @property
    def size_delta(self) -> Tuple[float, float]:
        if self.node_b is None:
            return (0.0, 0.0)
        a, b = _rect_of(self.node_a), _rect_of(self.node_b)
        return (b.width - a.width, b.height - a.height)

    @property
    def distance(self) -> float:
        dx, dy = self.position_delta
        return math.hypot(dx, dy)


def _rect_of(item: Any) -> Rect:
    # Nodes carry `rect`, groups carry `bounds`
    return item.rect if hasattr(item, 'rect') else item.bounds


@dataclass
class MatchResult:
    correspondences: List[Correspondence] = field(default_factory=list)
    unmatched_b: List[Any] = field(default_factory=list)

    def matched_pairs(self) -> List[Correspondence]:
        return [c for c in self.correspondences if c.matched]

    def unmatched_a(self) -> List[Any]:
        return [c.node_a for c in self.correspondences if not c.matched]

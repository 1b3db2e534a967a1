import sys
import os
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from layout_comparator.tree_diff import (
    PATTERN_LARGE_SHIFT,
    PATTERN_MICRO_SHIFT,
    PATTERN_OVERFLOW,
    PATTERN_SMALL_SHIFT,
    PATTERN_STACKING,
    PATTERN_STRUCTURAL,
    VisualTreeDiffer,
    severity_for,
)
from layout_core.models import LayoutSummary, RawElement, Rect, SemanticType, SummarizedNode, Viewport
from layout_core.summarizer import LayoutSummarizer

VIEWPORT = Viewport(1280, 800)


def summarize(*elements):
    return LayoutSummarizer().summarize(list(elements), VIEWPORT)


def heading(x=0, y=0, w=200, h=40, text='Hello'):
    return RawElement(tag_name='h1', rect=Rect(x, y, w, h), text=text)


def node(node_id, y=0, h=20, **kwargs):
    return SummarizedNode(node_id=node_id, tag_name='div', rect=Rect(0, y, 100, h),
                          semantic_type=SemanticType.STRUCTURAL, importance=20, **kwargs)


def manual_summary(*nodes):
    return LayoutSummary(nodes=list(nodes), groups=[], viewport=VIEWPORT)


def test_identical_heading_has_no_changes():
    result = VisualTreeDiffer().diff(summarize(heading()), summarize(heading()))
    assert result.similarity.overall_similarity == pytest.approx(1.0)
    assert (len(result.added), len(result.removed), len(result.modified), len(result.moved)) == (0, 0, 0, 0)
    assert not result.has_changes
    assert result.unchanged == 1
    assert result.severity == 'minimal'
    assert result.patterns == []


def test_one_pixel_move_is_tagged():
    result = VisualTreeDiffer().diff(summarize(heading(y=0)), summarize(heading(y=1)))
    assert len(result.moved) == 1
    assert result.modified == []
    assert result.moved[0].position_diff == pytest.approx(1.0)
    assert PATTERN_MICRO_SHIFT in result.patterns
    assert PATTERN_STRUCTURAL not in result.patterns
    assert result.severity == 'minimal'


def test_shift_magnitudes():
    small = VisualTreeDiffer().diff(summarize(heading(y=0)), summarize(heading(y=3)))
    assert small.patterns == [PATTERN_SMALL_SHIFT]
    large = VisualTreeDiffer().diff(summarize(heading(y=0)), summarize(heading(y=20)))
    assert large.patterns == [PATTERN_LARGE_SHIFT]


def test_move_epsilon():
    result = VisualTreeDiffer(move_epsilon=2).diff(summarize(heading(y=0)), summarize(heading(y=1)))
    assert result.moved == []
    assert result.unchanged == 1


def test_move_with_resize_is_modified():
    result = VisualTreeDiffer().diff(summarize(heading(y=0)), summarize(heading(y=4, h=48)))
    assert result.moved == []
    assert len(result.modified) == 1
    properties = [change.property for change in result.modified[0].changes]
    assert properties == ['position', 'height']


def test_stacking_change():
    a = manual_summary(node('node_0', styles={'z-index': '1'}))
    b = manual_summary(node('node_0', styles={'z-index': '5'}))
    result = VisualTreeDiffer().diff(a, b)
    assert len(result.modified) == 1
    assert result.modified[0].changes[0].property == 'z-index'
    assert PATTERN_STACKING in result.patterns


def test_visibility_and_opacity_are_tracked():
    a = manual_summary(node('node_0'), node('node_1', y=300))
    b = manual_summary(node('node_0', visible=False), node('node_1', y=300, opacity=0.5))
    result = VisualTreeDiffer().diff(a, b)
    assert [c.changes[0].property for c in result.modified] == ['visible', 'opacity']
    assert PATTERN_STACKING in result.patterns


def test_added_and_removed_nodes():
    a = summarize(heading(), RawElement(tag_name='img', rect=Rect(600, 600, 50, 50)))
    b = summarize(heading(), RawElement(tag_name='ul', rect=Rect(0, 300, 400, 100)))
    result = VisualTreeDiffer().diff(a, b)
    assert [c.node_a.tag_name for c in result.removed] == ['img']
    assert [c.node_b.tag_name for c in result.added] == ['ul']
    assert PATTERN_STRUCTURAL in result.patterns


def test_many_modifications_shift_layout():
    a = manual_summary(*[node(f"node_{i}", y=i * 300) for i in range(4)])
    b = manual_summary(*[node(f"node_{i}", y=i * 300, h=25) for i in range(4)])
    assert PATTERN_STRUCTURAL in VisualTreeDiffer().diff(a, b).patterns

    a3 = manual_summary(*[node(f"node_{i}", y=i * 300) for i in range(3)])
    b3 = manual_summary(*[node(f"node_{i}", y=i * 300, h=25) for i in range(3)])
    assert PATTERN_STRUCTURAL not in VisualTreeDiffer().diff(a3, b3).patterns


def test_overflow_hint():
    a = manual_summary(node('node_0'))
    b = manual_summary(node('node_0', is_scrollable=True))
    assert VisualTreeDiffer().diff(a, b).patterns == [PATTERN_OVERFLOW]


def test_severity_bands():
    assert severity_for(100) == 'minimal'
    assert severity_for(98) == 'minimal'
    assert severity_for(97.9) == 'low'
    assert severity_for(95) == 'low'
    assert severity_for(90) == 'medium'
    assert severity_for(80) == 'high'
    assert severity_for(79.9) == 'critical'


def test_diff_serializes():
    result = VisualTreeDiffer().diff(summarize(heading(y=0)), summarize(heading(y=1)))
    data = result.to_dict()
    assert data['moved'][0]['tag_name'] == 'h1'
    assert data['severity'] == 'minimal'
    assert data['similarity']['overall_similarity'] == pytest.approx(result.similarity.overall_similarity)

import sys
import os
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from layout_calibration.stability import StabilityAnalyzer
from layout_core.errors import InsufficientSamplesError
from layout_core.models import LayoutSummary, NodeGroup, RawElement, Rect, SemanticType, SummarizedNode, Viewport
from layout_core.summarizer import LayoutSummarizer

VIEWPORT = Viewport(1280, 800)


def summarize(*elements):
    return LayoutSummarizer().summarize(list(elements), VIEWPORT)


def node(node_id, tag='div', x=0, y=0, **kwargs):
    return SummarizedNode(node_id=node_id, tag_name=tag, rect=Rect(x, y, 50, 20),
                          semantic_type=SemanticType.STRUCTURAL, importance=20, **kwargs)


def manual_summary(*nodes, groups=None):
    return LayoutSummary(nodes=list(nodes), groups=groups or [], viewport=VIEWPORT)


def test_needs_two_samples():
    summary = summarize(RawElement(tag_name='div', rect=Rect(10, 10, 50, 20)))
    with pytest.raises(InsufficientSamplesError):
        StabilityAnalyzer().analyze([summary])
    with pytest.raises(InsufficientSamplesError):
        StabilityAnalyzer().analyze([])


def test_identical_node_is_stable():
    summaries = [summarize(RawElement(tag_name='div', rect=Rect(10, 10, 50, 20))) for _ in range(5)]
    result = StabilityAnalyzer().analyze(summaries)
    variation = result.node_variations[0]
    assert variation.stability_score >= 0.99
    assert not variation.is_unstable
    assert result.node_stability == 100.0
    assert result.group_stability == pytest.approx(100.0)
    assert result.overall_stability == pytest.approx(100.0)
    assert result.similarity_stability == pytest.approx(100.0)
    assert result.unstable_areas == []


def test_changing_text_is_unstable():
    texts = ['Mon', 'Tue', 'Tue']
    summaries = [summarize(RawElement(tag_name='p', rect=Rect(0, 0, 200, 20), text=t)) for t in texts]
    result = StabilityAnalyzer().analyze(summaries)
    variation = result.node_variations[0]
    assert variation.distinct_text_count == 2
    assert variation.stability_score == pytest.approx(0.9)
    assert variation.is_unstable
    assert variation.variation_types == ['text']
    assert result.node_stability == 0.0
    assert [area.variation_type for area in result.unstable_areas] == ['text']


def test_position_drift():
    summaries = [manual_summary(node('node_0', y=y)) for y in (0, 0, 20)]
    result = StabilityAnalyzer().analyze(summaries)
    variation = result.node_variations[0]
    assert variation.distinct_position_count == 2
    assert variation.stability_score == pytest.approx(0.4 * (1 - 1 / 3) + 0.6)
    assert variation.is_unstable
    assert variation.max_position_delta == 20


def test_sub_bucket_jitter_is_ignored():
    summaries = [manual_summary(node('node_0', x=x)) for x in (10, 11, 9)]
    result = StabilityAnalyzer().analyze(summaries)
    assert result.node_variations[0].distinct_position_count == 1
    assert not result.node_variations[0].is_unstable


def test_fallback_identity_by_tag_class_and_position():
    first = manual_summary(node('node_0', class_name='card'))
    # Ids shift because a new node was inserted in front
    second = manual_summary(node('node_0', tag='span', y=500), node('node_1', x=10, y=10, class_name='card'))
    analyzer = StabilityAnalyzer()
    assert analyzer.find_counterpart(first.nodes[0], second) is second.nodes[1]

    result = analyzer.analyze([first, second])
    variation = result.node_variations[0]
    assert variation.distinct_position_count == 2
    assert variation.distinct_visibility_count == 1


def test_fallback_identity_is_exclusive():
    first = manual_summary(node('node_0', class_name='card'), node('node_1', x=20, class_name='card'))
    # One card disappeared and new nodes took the low ids
    second = manual_summary(node('node_0', tag='span', y=500), node('node_1', tag='span', y=600),
                            node('node_2', class_name='card'))
    analyzer = StabilityAnalyzer()
    counterparts = analyzer.match_iteration(first.nodes, second)
    assert counterparts['node_0'] is second.nodes[2]
    assert counterparts['node_1'] is None

    result = analyzer.analyze([first, second])
    assert result.node_variations[0].visibility == [True, True]
    assert result.node_variations[1].visibility == [True, False]


def test_id_match_is_not_taken_by_fallback():
    first = manual_summary(node('node_0', class_name='card'), node('node_1', x=10, class_name='card'))
    # node_0 changed tag, so its fallback must not grab node_1's own counterpart
    second = manual_summary(node('node_0', tag='span', y=500), node('node_1', x=10, class_name='card'))
    counterparts = StabilityAnalyzer().match_iteration(first.nodes, second)
    assert counterparts['node_1'] is second.nodes[1]
    assert counterparts['node_0'] is None


def test_missing_node_counts_as_hidden():
    first = manual_summary(node('node_0', class_name='banner'))
    second = manual_summary()
    result = StabilityAnalyzer().analyze([first, second])
    variation = result.node_variations[0]
    assert variation.visibility == [True, False]
    assert 'visibility' in variation.variation_types


def test_group_stability():
    def grouped(y):
        n = node('node_0', y=y)
        return manual_summary(n, groups=[NodeGroup('group_0', SemanticType.STRUCTURAL, n.rect, n.rect, ['node_0'])])

    analyzer = StabilityAnalyzer()
    assert analyzer.group_stability([grouped(0), grouped(10), grouped(200)]) == pytest.approx(50.0)

    result = analyzer.analyze([grouped(0), grouped(0)])
    assert result.overall_stability == pytest.approx(100.0)


def test_stability_by_type():
    def page(text):
        return summarize(
            RawElement(tag_name='h1', rect=Rect(0, 0, 300, 40), text='Title'),
            RawElement(tag_name='p', rect=Rect(0, 300, 300, 20), text=text),
        )

    result = StabilityAnalyzer().analyze([page('a'), page('b')])
    assert result.stability_by_type == {'heading': 100.0, 'content': 0.0}
    assert result.stable_count == 1

import sys
import os
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from layout_comparator.similarity import SimilarityAggregator, similarity_report
from layout_core.models import AccessibilityInfo, LayoutSummary, RawElement, Rect, SemanticType, SummarizedNode, Viewport
from layout_core.summarizer import LayoutSummarizer

VIEWPORT = Viewport(1280, 800)


def summarize(*elements):
    return LayoutSummarizer().summarize(list(elements), VIEWPORT)


def heading(y=0, text='Hello'):
    return RawElement(tag_name='h1', rect=Rect(0, y, 200, 40), text=text)


def manual_summary(*nodes):
    return LayoutSummary(nodes=list(nodes), groups=[], viewport=VIEWPORT)


def test_summary_is_identical_to_itself():
    page = RawElement(tag_name='main', rect=Rect(0, 0, 1280, 800), children=[
        heading(),
        RawElement(tag_name='button', rect=Rect(0, 100, 80, 30), text='Open', class_name='btn primary',
                   accessibility=AccessibilityInfo(role='button', aria_expanded=False)),
        RawElement(tag_name='p', rect=Rect(0, 200, 600, 60), text='Paragraph text'),
    ])
    summary = summarize(page)
    result = SimilarityAggregator().similarity(summary, summary)
    assert result.overall_similarity == pytest.approx(1.0)
    assert result.coordinate_similarity == pytest.approx(1.0)
    assert result.accessibility_similarity == pytest.approx(1.0)
    assert result.text_similarity == pytest.approx(1.0)
    assert result.text_length_similarity == pytest.approx(1.0)


def test_both_empty_is_identical():
    empty = summarize()
    result = SimilarityAggregator().similarity(empty, empty)
    assert result.overall_similarity == pytest.approx(1.0)
    assert result.coordinate_details.match_ratio == 1.0


def test_disjoint_layouts_only_lose_match_ratio():
    a = summarize(RawElement(tag_name='div', rect=Rect(0, 0, 100, 100)))
    b = summarize(RawElement(tag_name='img', rect=Rect(1000, 700, 50, 50)))
    result = SimilarityAggregator().similarity(a, b)
    assert result.coordinate_details.matched_nodes == 0
    assert result.coordinate_similarity == pytest.approx(0.8)
    assert result.accessibility_similarity == pytest.approx(1.0)
    assert result.text_similarity == pytest.approx(1.0)
    assert result.text_length_similarity == pytest.approx(1.0)
    assert result.overall_similarity == pytest.approx(0.3 * 0.8 + 0.2 + 0.3 + 0.2)


def test_identical_heading():
    result = SimilarityAggregator().similarity(summarize(heading()), summarize(heading()))
    assert result.overall_similarity == pytest.approx(1.0)


def test_one_pixel_move():
    result = SimilarityAggregator().similarity(summarize(heading(0)), summarize(heading(1)))
    details = result.coordinate_details
    assert details.average_position_delta == {'x': 0, 'y': 1}
    assert details.position_score == pytest.approx(0.98)
    assert result.coordinate_similarity == pytest.approx(0.5 * 0.98 + 0.3 + 0.2)
    assert result.overall_similarity == pytest.approx(0.3 * 0.99 + 0.7)


def test_text_change_scores_partial_match():
    result = SimilarityAggregator().similarity(summarize(heading(text='Hello')),
                                               summarize(heading(text='Hellp')))
    assert result.text_details.exact_matches == 0
    assert result.text_details.partial_matches == 1
    assert result.text_similarity == pytest.approx(0.3 + 0.2 * (1 - 1 / 50))
    assert result.text_length_similarity == pytest.approx(1.0)


def test_text_length_dimension():
    result = SimilarityAggregator().similarity(summarize(heading(text='Hello')),
                                               summarize(heading(text='Hello there')))
    details = result.text_length_details
    assert details.total_length_a == 5
    assert details.total_length_b == 11
    assert details.length_ratio == pytest.approx(5 / 11)
    assert details.average_length_difference == 6
    assert result.text_length_similarity == pytest.approx(0.6 * 5 / 11 + 0.4 * (1 - 6 / 20))


def test_accessibility_dimension():
    a = SummarizedNode(node_id='node_0', tag_name='button', rect=Rect(0, 0, 80, 30),
                       semantic_type=SemanticType.INTERACTIVE, importance=60, role='button',
                       state={'expanded': False, 'disabled': False})
    b = SummarizedNode(node_id='node_0', tag_name='button', rect=Rect(0, 0, 80, 30),
                       semantic_type=SemanticType.INTERACTIVE, importance=60, role='link',
                       state={'expanded': True, 'disabled': False})
    result = SimilarityAggregator().similarity(manual_summary(a), manual_summary(b))
    details = result.accessibility_details
    assert (details.matched_roles, details.total_roles) == (0, 1)
    assert (details.matched_labels, details.total_labels) == (0, 0)
    assert (details.matched_states, details.total_states) == (1, 2)
    assert result.accessibility_similarity == pytest.approx(0.4 * 0 + 0.4 * 1 + 0.2 * 0.5)


def test_overall_is_convex_combination():
    a = summarize(heading(), RawElement(tag_name='p', rect=Rect(0, 60, 300, 20), text='First'))
    b = summarize(heading(y=12, text='Hello!'))
    result = SimilarityAggregator().similarity(a, b)
    expected = (0.3 * result.coordinate_similarity + 0.2 * result.accessibility_similarity +
                0.3 * result.text_similarity + 0.2 * result.text_length_similarity)
    assert result.overall_similarity == pytest.approx(expected)
    assert 0.0 <= result.overall_similarity <= 1.0


def test_similarity_report():
    summary = summarize(heading())
    report = similarity_report(SimilarityAggregator().similarity(summary, summary))
    assert 'Overall Similarity: 100.00%' in report
    assert 'Matched nodes: 1/1' in report

import sys
import os
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from layout_core.accessibility_matcher import (
    AccessibilityMatcher,
    GroupAttributes,
    GroupCorrespondence,
    accessibility_selector,
    extract_group_attributes,
    match_group_pair,
    movement_vector,
)
from layout_core.models import LayoutSummary, NodeGroup, Rect, SemanticType, SummarizedNode, Viewport


def node(node_id, tag, x=0, y=0, w=100, h=50, semantic=SemanticType.STRUCTURAL, **kwargs):
    return SummarizedNode(node_id=node_id, tag_name=tag, rect=Rect(x, y, w, h),
                          semantic_type=semantic, importance=50, **kwargs)


def single_groups(nodes):
    return [NodeGroup(group_id=f"group_{i}", type=n.semantic_type, seed=n.rect, bounds=n.rect,
                      node_ids=[n.node_id]) for i, n in enumerate(nodes)]


def page(nav_y=0, main_y=100):
    nodes = [
        node('node_0', 'nav', y=nav_y, semantic=SemanticType.NAVIGATION, aria_label='Primary'),
        node('node_1', 'main', y=main_y, semantic=SemanticType.CONTENT, role='main'),
        node('node_2', 'div', y=400, class_name='card'),
    ]
    return LayoutSummary(nodes=nodes, groups=single_groups(nodes), viewport=Viewport(1280, 800))


def test_landmark_groups_are_paired():
    a, b = page(), page(nav_y=5, main_y=130)
    correspondences = AccessibilityMatcher().match_summaries(a, b)
    assert [(c.group_a.group_id, c.group_b.group_id) for c in correspondences] == [
        ('group_0', 'group_0'), ('group_1', 'group_1')]

    nav, main = correspondences
    assert nav.confidence == pytest.approx(0.95 * 0.9 + 0.1)
    assert nav.selector == '[aria-label="Primary"]'
    assert nav.identifier == 'aria-label="Primary"'
    assert not nav.is_shifted

    assert main.confidence == pytest.approx(0.98 * 0.9 + 0.1)
    assert 'semantic+role-match' in main.match_reasons
    assert main.selector == 'main[role="main"]'
    assert main.position_shift == (0, 30)
    assert main.is_shifted


def test_groups_without_accessibility_signal_are_not_paired():
    a, b = page(), page()
    correspondences = AccessibilityMatcher().match_summaries(a, b)
    assert all(c.group_a.group_id != 'group_2' for c in correspondences)


def test_candidates_are_claimed_exclusively():
    nav_a = [node('node_0', 'nav', semantic=SemanticType.NAVIGATION),
             node('node_1', 'nav', y=300, semantic=SemanticType.NAVIGATION)]
    nav_b = [node('node_0', 'nav', semantic=SemanticType.NAVIGATION)]
    a = LayoutSummary(nodes=nav_a, groups=single_groups(nav_a), viewport=Viewport(1280, 800))
    b = LayoutSummary(nodes=nav_b, groups=single_groups(nav_b), viewport=Viewport(1280, 800))
    correspondences = AccessibilityMatcher().match_summaries(a, b)
    assert len(correspondences) == 1
    assert correspondences[0].group_a.group_id == 'group_0'


def test_priority_ladder():
    assert match_group_pair(GroupAttributes(aria_labelledby='t'),
                            GroupAttributes(aria_labelledby='t')).confidence == pytest.approx(0.92)
    assert match_group_pair(GroupAttributes(aria_describedby='d'),
                            GroupAttributes(aria_describedby='d')).confidence == pytest.approx(0.90)
    assert match_group_pair(GroupAttributes(element_id='hero'),
                            GroupAttributes(element_id='hero')).confidence == pytest.approx(0.93)
    assert match_group_pair(GroupAttributes(semantic_tag='article'),
                            GroupAttributes(semantic_tag='article')).confidence == pytest.approx(0.80)
    assert match_group_pair(GroupAttributes(role='search'),
                            GroupAttributes(role='search')).confidence == pytest.approx(0.88)
    assert match_group_pair(GroupAttributes(role='button'),
                            GroupAttributes(role='button')).confidence == pytest.approx(0.75)
    assert match_group_pair(GroupAttributes(role='button'), GroupAttributes(role='link')) is None


def test_weak_structure_does_not_adjust_confidence():
    a = GroupAttributes(semantic_tag='figcaption', structure=['<figcaption>', 'span'])
    b = GroupAttributes(semantic_tag='figcaption', structure=['<figcaption>', 'b', 'i'])
    match = match_group_pair(a, b)
    assert match.confidence == pytest.approx(0.70)
    # 0.70 is not above the acceptance threshold
    assert match.confidence <= AccessibilityMatcher().acceptance_threshold


def test_extract_attributes_walks_descendants():
    nodes = [
        node('node_0', 'section', semantic=SemanticType.CONTENT, class_name='hero wide'),
        node('node_1', 'div', parent_id='node_0', depth=1),
        node('node_2', 'span', parent_id='node_1', depth=2, role='note'),
        node('node_3', 'b', parent_id='node_2', depth=3, aria_label='Deep'),
    ]
    group = NodeGroup('group_0', SemanticType.CONTENT, nodes[0].rect, nodes[0].rect, ['node_0'])
    summary = LayoutSummary(nodes=nodes, groups=[group], viewport=Viewport(1280, 800))

    attrs = extract_group_attributes(group, summary)
    assert attrs.semantic_tag == 'section'
    assert attrs.aria_label == 'Deep'
    assert attrs.role == 'note'
    assert attrs.first_class == 'hero'
    assert attrs.structure == ['<section>', 'div', 'span[role=note]']


def test_selector_fallbacks():
    assert accessibility_selector(GroupAttributes(element_id='x', aria_label='y')) == '#x'
    assert accessibility_selector(GroupAttributes(aria_labelledby='t')) == '[aria-labelledby="t"]'
    assert accessibility_selector(GroupAttributes(semantic_tag='footer')) == 'footer'
    assert accessibility_selector(GroupAttributes(role='search')) == '[role="search"]'
    assert accessibility_selector(GroupAttributes(semantic_tag='section', first_class='hero')) == 'section.hero'
    assert accessibility_selector(GroupAttributes(first_class='card', first_tag='div')) == '.card'
    assert accessibility_selector(GroupAttributes(first_tag='span')) == 'span'


def test_movement_vector():
    group_a = NodeGroup('g', SemanticType.CONTENT, Rect(0, 0, 100, 100), Rect(0, 0, 100, 100))
    group_b = NodeGroup('g', SemanticType.CONTENT, Rect(30, 40, 100, 100), Rect(30, 40, 100, 100))
    vector = movement_vector(GroupCorrespondence(group_a, group_b, confidence=0.9))
    assert vector['from'] == (50, 50)
    assert vector['to'] == (80, 90)
    assert vector['distance'] == pytest.approx(50.0)
    assert vector['angle'] == pytest.approx(53.130102, rel=1e-5)

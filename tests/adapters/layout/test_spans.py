from __future__ import annotations

import pytest

from adapters.layout.spans import compute_subtree_spans, group_width, leaf_span
from domain.diagnostics import LayoutDiagnostics
from domain.models import LayoutConfig, PlacementNode, PlacementTree


def _tree(children: dict[str, tuple[list[str], list[str]]]) -> PlacementTree:
    tree = PlacementTree(root_id="R")
    levels = {"R": 0}
    for parent_id, (primary, secondary) in children.items():
        for child_id in primary:
            levels[child_id] = levels[parent_id] + 1
        for child_id in secondary:
            levels[child_id] = levels[parent_id] + 1
    for node_id, level in levels.items():
        tree.nodes[node_id] = PlacementNode(node_id, level, "primary")
    for parent_id, (primary, secondary) in children.items():
        tree.nodes[parent_id].primary = list(primary)
        tree.nodes[parent_id].secondary = list(secondary)
        for child_id in primary:
            tree.nodes[child_id].parent_id = parent_id
        for child_id in secondary:
            tree.nodes[child_id].parent_id = parent_id
            tree.nodes[child_id].branch = "secondary"
    return tree


def test_primary_children_extend_left_bias(layout_config: LayoutConfig) -> None:
    spans = compute_subtree_spans(_tree({"R": (["A", "B"], [])}), layout_config)

    assert spans["A"] == leaf_span(layout_config)
    assert spans["R"].left_bias == pytest.approx(560)
    assert spans["R"].right_bias == pytest.approx(90)
    assert spans["R"].width == pytest.approx(650)


def test_both_branches_widen_both_sides(layout_config: LayoutConfig) -> None:
    spans = compute_subtree_spans(_tree({"R": (["A"], ["B"])}), layout_config)

    assert spans["R"].left_bias == pytest.approx(180)
    assert spans["R"].right_bias == pytest.approx(180)


def test_loop_group_span_is_clamped(layout_config: LayoutConfig) -> None:
    tree = _tree({"R": (["L"], []), "L": (["A", "B", "C", "D"], [])})

    spans = compute_subtree_spans(tree, layout_config, frozenset({"L"}))

    assert spans["L"].width == pytest.approx(540)
    assert spans["L"].left_bias == spans["L"].right_bias == pytest.approx(270)


def test_visit_limit_falls_back_to_leaf() -> None:
    config = LayoutConfig(span_visit_limit=2)
    diagnostics = LayoutDiagnostics()
    tree = _tree({"R": (["A"], []), "A": (["B"], []), "B": (["C"], [])})

    spans = compute_subtree_spans(tree, config, diagnostics=diagnostics)

    assert spans["B"] == leaf_span(config)
    assert "C" not in spans
    assert diagnostics.codes() == ["span.guard"]


def test_group_width(layout_config: LayoutConfig) -> None:
    leaf = leaf_span(layout_config)

    assert group_width([], layout_config) == 0
    assert group_width([leaf], layout_config) == 180
    assert group_width([leaf, leaf, leaf], layout_config) == 940

from __future__ import annotations

import pytest

from adapters.layout.positions import (
    LateralPlacer,
    LayoutMetrics,
    PositionAssigner,
    compute_branch_offset,
    compute_group_slots,
    compute_layout_metrics,
    create_level_baselines,
)
from adapters.layout.spans import compute_subtree_spans, leaf_span
from domain.models import LayoutConfig, PlacementNode, PlacementTree, Point


def _split_tree() -> PlacementTree:
    tree = PlacementTree(root_id="R")
    tree.nodes["R"] = PlacementNode("R", 0, "primary", primary=["A"], secondary=["B"])
    tree.nodes["A"] = PlacementNode("A", 1, "primary", parent_id="R", primary=["G"])
    tree.nodes["B"] = PlacementNode("B", 1, "secondary", parent_id="R")
    tree.nodes["G"] = PlacementNode("G", 2, "primary", parent_id="A")
    return tree


def test_single_child_without_opposite_stays_above_parent(layout_config: LayoutConfig) -> None:
    slots = compute_group_slots(400, [leaf_span(layout_config)], -1, False, 120, layout_config)

    assert slots == [400]


def test_single_child_with_opposite_is_offset(layout_config: LayoutConfig) -> None:
    leaf = leaf_span(layout_config)

    assert compute_group_slots(400, [leaf], -1, True, 120, layout_config) == [190]
    assert compute_group_slots(400, [leaf], 1, True, 120, layout_config) == [610]


def test_group_is_centred_or_pushed_to_its_side(layout_config: LayoutConfig) -> None:
    pair = [leaf_span(layout_config), leaf_span(layout_config)]

    assert compute_group_slots(400, pair, -1, False, 120, layout_config) == [210, 590]
    assert compute_group_slots(400, pair, 1, True, 120, layout_config) == [610, 990]
    assert compute_group_slots(400, pair, -1, True, 120, layout_config) == [-190, 190]


def test_branch_offset_widens_below_first_split(layout_config: LayoutConfig) -> None:
    placed = PlacementNode("R", 0, "primary")
    narrow = LayoutMetrics(max_row_width=380, max_row_count=2, first_split_level=None)
    wide = LayoutMetrics(max_row_width=760, max_row_count=3, first_split_level=0)

    assert compute_branch_offset(placed, [], narrow, layout_config) == 120
    assert compute_branch_offset(placed, [1], narrow, layout_config) == 180
    assert compute_branch_offset(placed, [1], wide, layout_config) == pytest.approx(304)


def test_level_baselines_step_upward(layout_config: LayoutConfig) -> None:
    baselines = create_level_baselines(_split_tree(), layout_config)

    assert baselines == {0: 300, 1: 150, 2: 0}


def test_layout_metrics(layout_config: LayoutConfig) -> None:
    metrics = compute_layout_metrics(_split_tree(), layout_config)

    assert metrics.max_row_count == 2
    assert metrics.max_row_width == 380
    assert metrics.first_split_level == 0


def test_assigner_places_branches_on_their_sides(layout_config: LayoutConfig) -> None:
    tree = _split_tree()
    assigner = PositionAssigner(
        layout_config,
        tree,
        compute_subtree_spans(tree, layout_config),
        create_level_baselines(tree, layout_config),
        compute_layout_metrics(tree, layout_config),
    )

    positions = assigner.assign()

    assert positions["R"] == Point(400, 300)
    assert positions["A"].x < 400 < positions["B"].x
    assert positions["A"].y == positions["B"].y == 150
    assert positions["G"] == Point(positions["A"].x, 0)


def test_lateral_slots_stack_left_of_parent(layout_config: LayoutConfig) -> None:
    tree = PlacementTree(root_id="R")
    tree.nodes["R"] = PlacementNode("R", 0, "primary", primary=["M"])
    tree.nodes["M"] = PlacementNode("M", 1, "primary", parent_id="R", lateral=["U1", "U2"])
    tree.nodes["U1"] = PlacementNode("U1", 1, "primary", parent_id="M", is_lateral=True)
    tree.nodes["U2"] = PlacementNode("U2", 1, "primary", parent_id="M", is_lateral=True)
    positions = {"R": Point(400, 300), "M": Point(590, -150)}

    LateralPlacer(layout_config, tree).place(positions)

    assert positions["U1"] == Point(210, -150)
    assert positions["U2"] == Point(-170, -150)

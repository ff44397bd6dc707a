from __future__ import annotations

from adapters.layout.level_normalizer import normalize_levels, order_level, trace_branch
from adapters.layout.placement_tree import NodeLayoutInfo
from domain.models import Branch, LayoutConfig, PlacementNode, PlacementTree, Point


def _info(
    node_id: str,
    parent_id: str | None,
    branch: Branch = "primary",
    *,
    level: int = 1,
    loop: bool = False,
) -> NodeLayoutInfo:
    return NodeLayoutInfo(
        node_id=node_id,
        name=node_id,
        level=level,
        branch=branch,
        parent_id=parent_id,
        is_loop_group=loop,
    )


def _ancestry() -> dict[str, NodeLayoutInfo]:
    # PA sits six hops below a secondary ring; PB sits two hops below a primary ring.
    items = [
        _info("LA", None, "secondary", loop=True),
        _info("A5", "LA"),
        _info("A4", "A5"),
        _info("A3", "A4"),
        _info("A2", "A3"),
        _info("A1", "A2"),
        _info("PA", "A1"),
        _info("LB", None, "primary", loop=True),
        _info("B1", "LB"),
        _info("PB", "B1", "secondary"),
        _info("CA", "PA"),
        _info("CB", "PB"),
    ]
    return {item.node_id: item for item in items}


def test_trace_is_bounded_by_hop_count() -> None:
    info = _ancestry()

    assert trace_branch("PA", info, 6) == "primary"
    assert trace_branch("PA", info, 8) == "secondary"
    assert trace_branch("PB", info, 6) == "primary"
    assert trace_branch(None, info) == "primary"


def test_parent_groups_follow_traced_branch() -> None:
    info = _ancestry()

    assert order_level(["CB", "CA"], info, 6) == ["CA", "CB"]
    assert order_level(["CA", "CB"], info, 8) == ["CB", "CA"]


def test_members_sort_primary_first_then_name() -> None:
    info = {
        "P": _info("P", None, level=0),
        "Z": _info("Z", "P"),
        "S": _info("S", "P", "secondary"),
        "A": _info("A", "P"),
    }

    assert order_level(["S", "Z", "A"], info) == ["A", "Z", "S"]


def test_rows_are_centred_at_fixed_pitch(layout_config: LayoutConfig) -> None:
    tree = PlacementTree(root_id="R")
    tree.nodes["R"] = PlacementNode("R", 0, "primary", primary=["P1"], secondary=["P2"])
    tree.nodes["P1"] = PlacementNode("P1", 1, "primary", parent_id="R")
    tree.nodes["P2"] = PlacementNode("P2", 1, "secondary", parent_id="R")
    info = {
        "R": _info("R", None, level=0),
        "P1": _info("P1", "R"),
        "P2": _info("P2", "R", "secondary"),
    }
    positions = {"R": Point(400, 300), "P1": Point(900, 150), "P2": Point(100, 150)}

    normalize_levels(tree, positions, info, layout_config)

    assert positions["P1"] == Point(210, 150)
    assert positions["P2"] == Point(590, 150)
    assert positions["R"] == Point(400, 300)


def test_root_row_keeps_root_fixed_with_lateral(layout_config: LayoutConfig) -> None:
    tree = PlacementTree(root_id="R")
    tree.nodes["R"] = PlacementNode("R", 0, "primary", primary=["P"], lateral=["U"])
    tree.nodes["U"] = PlacementNode("U", 0, "primary", parent_id="R", is_lateral=True)
    tree.nodes["P"] = PlacementNode("P", 1, "primary", parent_id="R")
    info = {
        "R": _info("R", None, level=0),
        "U": _info("U", "R", level=0),
        "P": _info("P", "R"),
    }
    positions = {"R": Point(400, 300), "U": Point(-500, 300), "P": Point(800, 150)}

    normalize_levels(tree, positions, info, layout_config)

    assert positions["R"] == Point(400, 300)
    assert positions["U"] == Point(20, 300)
    assert positions["P"] == Point(400, 150)

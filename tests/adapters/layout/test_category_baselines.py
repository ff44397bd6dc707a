from __future__ import annotations

from adapters.layout.category_baselines import enforce_category_baselines
from domain.models import EquipmentNode, LayoutConfig, PlacementNode, PlacementTree, Point


def _fixture() -> tuple[PlacementTree, dict[str, EquipmentNode], dict[str, Point]]:
    tree = PlacementTree(root_id="R")
    tree.nodes["R"] = PlacementNode("R", 0, "primary", primary=["M"])
    tree.nodes["M"] = PlacementNode("M", 1, "primary", parent_id="R", primary=["P"], lateral=["U"])
    tree.nodes["U"] = PlacementNode("U", 1, "primary", parent_id="M", is_lateral=True)
    tree.nodes["P"] = PlacementNode("P", 2, "primary", parent_id="M")
    lookup = {
        "R": EquipmentNode(equipment_id="R", name="R", type="PDU", level=0),
        "M": EquipmentNode(equipment_id="M", name="MDS-1", type="MDS", level=1),
        "U": EquipmentNode(equipment_id="U", name="UPS-1", type="UPS", level=1),
        "P": EquipmentNode(equipment_id="P", name="PANEL-1", type="PANEL", level=2),
    }
    positions = {
        "R": Point(400, 300),
        "M": Point(590, 150),
        "U": Point(210, 150),
        "P": Point(590, 0),
    }
    return tree, lookup, positions


BASELINES = {0: 300.0, 1: 150.0, 2: 0.0}


def test_nodes_snap_to_category_rows(layout_config: LayoutConfig) -> None:
    tree, lookup, positions = _fixture()

    moved = enforce_category_baselines(tree, positions, lookup, BASELINES, layout_config)

    assert moved == 2
    assert positions["M"] == Point(590, -150)
    assert positions["U"] == Point(210, -150)
    assert positions["P"] == Point(590, 0)
    assert positions["R"] == Point(400, 300)


def test_disabled_enforcement_keeps_level_rows() -> None:
    config = LayoutConfig(enforce_category_baselines=False)
    tree, lookup, positions = _fixture()

    moved = enforce_category_baselines(tree, positions, lookup, BASELINES, config)

    assert moved == 0
    assert positions["M"] == Point(590, 150)

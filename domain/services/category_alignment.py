from __future__ import annotations

from collections.abc import Mapping

from domain.equipment_types import categorize_type, is_power_storage, is_switchgear, type_prefix
from domain.models import EquipmentNode, LayoutConfig, PlacementTree, Point

RING_BUS_KEY = "RING_BUS"
PAIRED_STORAGE_PREFIX = "UPS_WITH_"

# Rows above the root, in category_spacing units.
CATEGORY_VERTICAL_OFFSETS: dict[str, int] = {
    "ATS": -1,
    RING_BUS_KEY: -2,
    "CDS": -2,
    "UPS": -3,
    "MDS": -3,
    "SWGR": -3,
    "DISTRIBUTION": -3,
    "GEN": -4,
    "TX": -4,
    "UTILITY": -5,
    "SUBSTATION": -5,
}


def alignment_key(
    node: EquipmentNode,
    parent: EquipmentNode | None,
    *,
    is_lateral: bool = False,
) -> str:
    if node.is_loop_group:
        return RING_BUS_KEY

    prefix = type_prefix(node.type)
    if is_power_storage(node.type, node.name):
        if is_lateral and parent is not None:
            return f"{PAIRED_STORAGE_PREFIX}{type_prefix(parent.type) or 'PARENT'}"
        return "UPS"

    category = categorize_type(node.type)
    if category == "DISTRIBUTION":
        if "MDS" in prefix:
            return "MDS"
        if "SWGR" in prefix or is_switchgear(prefix):
            return "SWGR"
        return "DISTRIBUTION"
    if category == "GENERATOR":
        return "GEN"
    if category == "TRANSFORMER":
        return "TX"
    if category == "UTILITY":
        return "UTILITY"
    if prefix in CATEGORY_VERTICAL_OFFSETS:
        return prefix
    return category


def is_paired_key(key: str) -> bool:
    return key.startswith(PAIRED_STORAGE_PREFIX)


def fixed_target_y(key: str, root_y: float, config: LayoutConfig) -> float | None:
    offset = CATEGORY_VERTICAL_OFFSETS.get(key)
    if offset is None:
        return None
    return root_y + offset * config.category_spacing


def expected_y(
    node_id: str,
    tree: PlacementTree,
    lookup: Mapping[str, EquipmentNode],
    positions: Mapping[str, Point],
    baselines: Mapping[int, float],
    config: LayoutConfig,
) -> float | None:
    """Row a placed node belongs on.

    Category targets win when enforcement is on; paired storage follows its partner;
    everything else sits on its level baseline. Partners must be settled first.
    """
    placed = tree.get(node_id)
    if placed is None:
        return None
    root_level = tree.root().level
    if node_id == tree.root_id:
        return baselines.get(root_level)

    equipment = lookup.get(node_id)
    parent = lookup.get(placed.parent_id) if placed.parent_id else None
    partner = positions.get(placed.parent_id) if placed.parent_id else None

    if equipment is not None and config.enforce_category_baselines:
        key = alignment_key(equipment, parent, is_lateral=placed.is_lateral)
        if is_paired_key(key):
            if partner is not None:
                return partner.y
        else:
            root_y = baselines.get(root_level, config.center.y)
            target = fixed_target_y(key, root_y, config)
            if target is not None:
                return target

    if placed.is_lateral and partner is not None:
        return partner.y
    return baselines.get(placed.level)

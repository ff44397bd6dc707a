from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Dict

from domain.models import EquipmentNode, LayoutConfig, PlacementTree, Point
from domain.services.category_alignment import expected_y

logger = logging.getLogger(__name__)


def enforce_category_baselines(
    tree: PlacementTree,
    positions: Dict[str, Point],
    lookup: Mapping[str, EquipmentNode],
    baselines: Mapping[int, float],
    config: LayoutConfig,
) -> int:
    """Snap each placed node to its category row; returns how many moved.

    Only y changes. Breadth-first order settles a switch before the storage
    paired with it, and the root is never moved.
    """
    moved = 0
    for node_id in tree.nodes:
        if node_id == tree.root_id:
            continue
        current = positions.get(node_id)
        if current is None:
            continue
        target = expected_y(node_id, tree, lookup, positions, baselines, config)
        if target is None or target == current.y:
            continue
        positions[node_id] = Point(current.x, target)
        moved += 1
    if moved:
        logger.debug("Category baselines moved %s nodes", moved)
    return moved

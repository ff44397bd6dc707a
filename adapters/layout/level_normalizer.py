from __future__ import annotations

from collections.abc import Mapping
from typing import Dict, List, Tuple

from domain.models import (
    BRANCH_PRIMARY,
    BRANCH_SECONDARY,
    Branch,
    LayoutConfig,
    PlacementTree,
    Point,
)

from adapters.layout.placement_tree import NodeLayoutInfo

ANCESTOR_TRACE_HOPS = 6

_BRANCH_RANK: Dict[Branch, int] = {BRANCH_PRIMARY: 0, BRANCH_SECONDARY: 1}


def trace_branch(
    parent_id: str | None,
    info: Mapping[str, NodeLayoutInfo],
    hops: int = ANCESTOR_TRACE_HOPS,
) -> Branch:
    """Branch of the nearest ring above ``parent_id``, else the parent's own branch."""
    if parent_id is None:
        return BRANCH_PRIMARY
    current_id: str | None = parent_id
    for _ in range(hops):
        if current_id is None:
            break
        current = info.get(current_id)
        if current is None:
            break
        if current.is_loop_group:
            return current.branch
        current_id = current.parent_id
    parent = info.get(parent_id)
    return parent.branch if parent is not None else BRANCH_PRIMARY


def order_level(
    node_ids: List[str],
    info: Mapping[str, NodeLayoutInfo],
    hops: int = ANCESTOR_TRACE_HOPS,
) -> List[str]:
    groups: Dict[str | None, List[str]] = {}
    for node_id in node_ids:
        groups.setdefault(info[node_id].parent_id, []).append(node_id)

    def group_key(parent_id: str | None) -> Tuple[int, int, str, str]:
        parent = info.get(parent_id) if parent_id is not None else None
        direct = parent.branch if parent is not None else BRANCH_PRIMARY
        name = parent.name if parent is not None else ""
        return (
            _BRANCH_RANK[trace_branch(parent_id, info, hops)],
            _BRANCH_RANK[direct],
            name,
            parent_id or "",
        )

    ordered: List[str] = []
    for parent_id in sorted(groups, key=group_key):
        members = groups[parent_id]
        ordered.extend(
            sorted(
                members,
                key=lambda node_id: (
                    _BRANCH_RANK[info[node_id].branch],
                    info[node_id].name,
                    node_id,
                ),
            )
        )
    return ordered


def normalize_levels(
    tree: PlacementTree,
    positions: Dict[str, Point],
    info: Mapping[str, NodeLayoutInfo],
    config: LayoutConfig,
) -> None:
    """Re-center every row on the root's x at a fixed pitch, in branch order.

    Lateral children are not counted as row members; each one takes the slot
    immediately left of its parent so the pairing survives the re-spacing.
    """
    rows: Dict[int, List[str]] = {}
    for node_id, placed in tree.nodes.items():
        if placed.is_lateral or node_id not in positions:
            continue
        rows.setdefault(placed.level, []).append(node_id)

    hops = config.ancestor_trace_hops
    for level in sorted(rows):
        slots: List[str] = []
        for node_id in order_level(rows[level], info, hops):
            laterals = [
                lateral_id
                for lateral_id in tree.nodes[node_id].lateral
                if lateral_id in positions
            ]
            slots.extend(reversed(laterals))
            slots.append(node_id)

        if tree.root_id in slots:
            # The root row is laid out around the root, which stays put.
            root_x = positions[tree.root_id].x
            start_x = root_x - slots.index(tree.root_id) * config.node_pitch
        else:
            start_x = config.center.x - (len(slots) - 1) * config.node_pitch / 2
        for index, node_id in enumerate(slots):
            current = positions[node_id]
            positions[node_id] = Point(start_x + index * config.node_pitch, current.y)

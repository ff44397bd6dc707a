from __future__ import annotations

import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Deque, Dict, List

from domain.diagnostics import LayoutDiagnostics
from domain.equipment_types import is_distribution_switch, is_power_storage
from domain.models import (
    BRANCH_PRIMARY,
    BRANCH_SECONDARY,
    Branch,
    EquipmentNode,
    PlacementNode,
    PlacementTree,
)
from domain.services.build_connection_graph import ConnectionGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeLayoutInfo:
    node_id: str
    name: str
    level: int
    branch: Branch
    parent_id: str | None
    is_root: bool = False
    is_lateral: bool = False
    is_power_storage: bool = False
    is_loop_group: bool = False


def build_placement_tree(
    root: EquipmentNode,
    nodes: Mapping[str, EquipmentNode],
    graph: ConnectionGraph,
    replacements: Mapping[str, str],
    diagnostics: LayoutDiagnostics | None = None,
) -> PlacementTree:
    """Expand the consolidated nodes breadth-first from the root.

    Each node is placed once under the first parent that reaches it. Upstream feeders
    become primary or secondary children by branch; power-storage feeders that pair
    with their parent become lateral children on the parent's own row.
    """
    lookup: Dict[str, EquipmentNode] = {**nodes, root.equipment_id: root}
    root_level = root.level
    tree = PlacementTree(root_id=root.equipment_id)
    tree.nodes[root.equipment_id] = PlacementNode(
        node_id=root.equipment_id,
        level=root_level,
        branch=BRANCH_PRIMARY,
    )
    queue: Deque[str] = deque([root.equipment_id])

    while queue:
        current_id = queue.popleft()
        current = tree.nodes[current_id]
        for neighbor_id in _upstream_ids(current_id, lookup, graph, replacements):
            if neighbor_id in tree.nodes:
                if _is_ancestor(tree, neighbor_id, current_id):
                    _record_cycle(diagnostics, current_id, neighbor_id)
                continue
            equipment = lookup.get(neighbor_id)
            if equipment is None or equipment.is_suppressed:
                continue

            lateral = _is_lateral(equipment, current_id, lookup, graph)
            branch = equipment.resolved_branch()
            child = PlacementNode(
                node_id=neighbor_id,
                level=current.level if lateral else current.level + 1,
                branch=branch,
                parent_id=current_id,
                is_lateral=lateral,
            )
            tree.nodes[neighbor_id] = child
            if lateral:
                current.lateral.append(neighbor_id)
            elif branch == BRANCH_SECONDARY:
                current.secondary.append(neighbor_id)
            else:
                current.primary.append(neighbor_id)
            queue.append(neighbor_id)

    return tree


def build_layout_info(
    tree: PlacementTree,
    lookup: Mapping[str, EquipmentNode],
) -> Dict[str, NodeLayoutInfo]:
    info: Dict[str, NodeLayoutInfo] = {}
    for node_id, placed in tree.nodes.items():
        equipment = lookup.get(node_id)
        name = equipment.name if equipment else node_id
        info[node_id] = NodeLayoutInfo(
            node_id=node_id,
            name=name,
            level=placed.level,
            branch=placed.branch,
            parent_id=placed.parent_id,
            is_root=node_id == tree.root_id,
            is_lateral=placed.is_lateral,
            is_power_storage=bool(
                equipment and is_power_storage(equipment.type, equipment.name)
            ),
            is_loop_group=bool(equipment and equipment.is_loop_group),
        )
    return info


def _member_ids(equipment_id: str, lookup: Mapping[str, EquipmentNode]) -> List[str]:
    equipment = lookup.get(equipment_id)
    if equipment is not None and equipment.loop_group is not None:
        return equipment.loop_group.member_ids()
    return [equipment_id]


def _upstream_ids(
    equipment_id: str,
    lookup: Mapping[str, EquipmentNode],
    graph: ConnectionGraph,
    replacements: Mapping[str, str],
) -> List[str]:
    # A ring representative is fed by whatever feeds any of its members.
    result: List[str] = []
    for member_id in _member_ids(equipment_id, lookup):
        for relation in graph.upstream_of(member_id):
            resolved = replacements.get(relation.equipment_id, relation.equipment_id)
            if resolved == equipment_id or resolved in result:
                continue
            result.append(resolved)
    return result


def _is_lateral(
    equipment: EquipmentNode,
    parent_id: str,
    lookup: Mapping[str, EquipmentNode],
    graph: ConnectionGraph,
) -> bool:
    if equipment.is_loop_group or not is_power_storage(equipment.type, equipment.name):
        return False
    parent = lookup.get(parent_id)
    if parent is not None and is_distribution_switch(parent.type):
        return True
    parent_members = set(_member_ids(parent_id, lookup))
    return any(
        relation.equipment_id in parent_members
        for relation in graph.upstream_of(equipment.equipment_id)
    )


def _is_ancestor(tree: PlacementTree, candidate_id: str, node_id: str) -> bool:
    current = tree.get(node_id)
    seen: set[str] = set()
    while current is not None and current.parent_id is not None:
        if current.parent_id == candidate_id:
            return True
        if current.parent_id in seen:
            return False
        seen.add(current.parent_id)
        current = tree.get(current.parent_id)
    return False


def _record_cycle(
    diagnostics: LayoutDiagnostics | None,
    node_id: str,
    ancestor_id: str,
) -> None:
    if diagnostics is None:
        return
    diagnostics.record(
        "info",
        "placement.residual_cycle",
        f"{node_id} feeds back into its ancestor {ancestor_id}; keeping first placement",
        subject_id=node_id,
        logger=logger,
    )

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Mapping, MutableMapping

from domain.diagnostics import LayoutDiagnostics
from domain.models import (
    BRANCH_PRIMARY,
    PLACEHOLDER_NAME,
    PLACEHOLDER_TYPE,
    PRIMARY_SOURCE,
    EquipmentNode,
    branch_for_source,
)
from domain.services.build_connection_graph import ConnectionGraph

logger = logging.getLogger(__name__)


def complete_upstream_coverage(
    root_id: str,
    nodes: MutableMapping[str, EquipmentNode],
    graph: ConnectionGraph,
    *,
    root_level: int = 0,
    max_depth: int | None = None,
    replacements: Mapping[str, str] | None = None,
    diagnostics: LayoutDiagnostics | None = None,
) -> MutableMapping[str, EquipmentNode]:
    """Restore ancestors that consolidation dropped as "already found closer".

    Walks the raw upstream adjacency breadth-first, so every feeder of every reachable
    node ends up in ``nodes`` with the child recorded among its parents. Feeders beyond
    ``max_depth`` hops stay excluded, matching the walker.
    """
    replacements = replacements or {}
    next_sequence = max((node.sequence for node in nodes.values()), default=-1) + 1
    queue: deque[tuple[str, int]] = deque([(root_id, root_level)])
    visited: set[str] = set()

    while queue:
        equipment_id, level = queue.popleft()
        if equipment_id in visited:
            continue
        visited.add(equipment_id)

        for relation in graph.upstream_of(equipment_id):
            if relation.equipment_id == root_id:
                continue
            parent_level = level + 1
            if max_depth is not None and parent_level - root_level > max_depth:
                continue
            existing = nodes.get(relation.equipment_id)
            child_ref = _resolve_reference(equipment_id, relation.equipment_id, replacements)
            if existing is None:
                inferred = EquipmentNode(
                    equipment_id=relation.equipment_id,
                    name=relation.name or PLACEHOLDER_NAME,
                    type=relation.type or PLACEHOLDER_TYPE,
                    level=parent_level,
                    sequence=next_sequence,
                    parent_id=child_ref,
                    source_label=relation.source_label,
                    branch=branch_for_source(relation.source_label) or BRANCH_PRIMARY,
                    sources=[relation.source_label or PRIMARY_SOURCE],
                    parent_ids=[child_ref] if child_ref else [],
                    connection_type=relation.connection_type,
                    path=(equipment_id,),
                )
                next_sequence += 1
                nodes[inferred.equipment_id] = inferred
                if diagnostics is not None:
                    diagnostics.record(
                        "info",
                        "coverage.restored",
                        f"Restored ancestor {inferred.name} above {equipment_id}",
                        subject_id=inferred.equipment_id,
                        logger=logger,
                    )
                queue.append((inferred.equipment_id, parent_level))
                continue

            existing.add_parent(child_ref)
            existing.add_source(relation.source_label)
            if existing.parent_id is None:
                existing.parent_id = child_ref
            if existing.branch is None:
                existing.branch = branch_for_source(relation.source_label)
            queue.append((relation.equipment_id, parent_level))

    return nodes


def _resolve_reference(
    child_id: str,
    parent_id: str,
    replacements: Mapping[str, str],
) -> str | None:
    resolved = replacements.get(child_id, child_id)
    # Ring members feeding each other keep their raw ids.
    if resolved == replacements.get(parent_id, parent_id):
        return child_id
    return resolved

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from domain.equipment_types import is_convergence_point
from domain.models import (
    BRANCH_PRIMARY,
    BRANCH_SECONDARY,
    PRIMARY_SOURCE,
    SECONDARY_SOURCE,
    AlternateParent,
    Branch,
    EquipmentNode,
    EquipmentVisit,
    branch_for_source,
)


@dataclass(frozen=True)
class ConsolidationPolicy:
    """Tie-breaking rules applied when one id is reached through several paths."""

    # Utilities, generators and MV switchgear fed by both sources stay on the primary side.
    convergence_forces_primary: bool = True
    closer_path_wins: bool = True
    secondary_wins_level_ties: bool = True
    # A later primary candidate pins the branch even when it does not take over the path.
    primary_pins_branch: bool = True
    # Use the label of the hop into the node instead of the branch inherited at hop one.
    prefer_relation_branch: bool = True


DEFAULT_CONSOLIDATION_POLICY = ConsolidationPolicy()


def consolidate_visits(
    visits: Iterable[EquipmentVisit],
    policy: ConsolidationPolicy = DEFAULT_CONSOLIDATION_POLICY,
) -> dict[str, EquipmentNode]:
    nodes: dict[str, EquipmentNode] = {}
    for visit in sorted(visits, key=lambda item: item.sequence):
        candidate = _candidate_branch(visit, policy)
        existing = nodes.get(visit.equipment_id)
        if existing is None:
            nodes[visit.equipment_id] = _new_node(visit, candidate)
            continue
        _merge_visit(existing, visit, candidate, policy)
    return nodes


def _candidate_branch(visit: EquipmentVisit, policy: ConsolidationPolicy) -> Branch | None:
    from_relation = branch_for_source(visit.source_label)
    if policy.prefer_relation_branch and from_relation is not None:
        return from_relation
    return visit.branch or from_relation


def _new_node(visit: EquipmentVisit, branch: Branch | None) -> EquipmentNode:
    node = EquipmentNode(
        equipment_id=visit.equipment_id,
        name=visit.name,
        type=visit.type,
        level=visit.level,
        sequence=visit.sequence,
        parent_id=visit.parent_id,
        source_label=visit.source_label,
        branch=branch,
        sources=[visit.source_label or PRIMARY_SOURCE],
        parent_ids=[visit.parent_id] if visit.parent_id else [],
        connection_type=visit.connection_type,
        path=visit.path,
    )
    _record_alternate(node, visit)
    return node


def _merge_visit(
    existing: EquipmentNode,
    visit: EquipmentVisit,
    candidate: Branch | None,
    policy: ConsolidationPolicy,
) -> None:
    existing.add_source(visit.source_label)
    existing.add_parent(visit.parent_id)
    _record_alternate(existing, visit)

    is_closer = visit.level < existing.level
    branch_conflict = (
        candidate is not None and existing.branch is not None and candidate != existing.branch
    )
    secondary_tie = (
        branch_conflict and candidate == BRANCH_SECONDARY and visit.level == existing.level
    )

    if (
        policy.convergence_forces_primary
        and is_convergence_point(visit.type)
        and PRIMARY_SOURCE in existing.sources
        and SECONDARY_SOURCE in existing.sources
    ):
        existing.branch = BRANCH_PRIMARY
        existing.source_label = PRIMARY_SOURCE
    elif (policy.closer_path_wins and is_closer) or (
        policy.secondary_wins_level_ties and secondary_tie
    ):
        existing.level = visit.level
        existing.parent_id = visit.parent_id
        existing.path = visit.path
        if visit.source_label:
            existing.source_label = visit.source_label
        if candidate is not None:
            existing.branch = candidate
        existing.connection_type = visit.connection_type
    elif existing.branch is None and candidate is not None:
        existing.branch = candidate
    elif policy.primary_pins_branch and candidate == BRANCH_PRIMARY:
        existing.branch = BRANCH_PRIMARY


def _record_alternate(node: EquipmentNode, visit: EquipmentVisit) -> None:
    if visit.connection_type == "normal" or not visit.parent_id:
        return
    alternate = AlternateParent(
        parent_id=visit.parent_id,
        source_label=visit.source_label or PRIMARY_SOURCE,
        connection_type=visit.connection_type,
    )
    if any(
        item.parent_id == alternate.parent_id and item.connection_type == alternate.connection_type
        for item in node.alternate_parents
    ):
        return
    node.alternate_parents.append(alternate)

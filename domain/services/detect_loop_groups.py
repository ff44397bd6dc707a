from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from domain.diagnostics import LayoutDiagnostics
from domain.models import (
    BRANCH_PRIMARY,
    BRANCH_SECONDARY,
    LOOP_GROUP_TYPE,
    PRIMARY_SOURCE,
    SECONDARY_SOURCE,
    AlternateParent,
    Branch,
    EquipmentNode,
    LoopGroup,
    branch_for_source,
)
from domain.services.build_connection_graph import ConnectionGraph

logger = logging.getLogger(__name__)

_RING_BUS_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"cds[^a-z0-9]*(\d+)[^a-z]*r"), "CDS-{}R-RING"),
    (re.compile(r"\bring[^a-z0-9]*([a-z]+|\d+)\b"), "RING-{}"),
)
LOOP_ID_PREFIX = "loop-"


@dataclass
class LoopDetectionResult:
    nodes: dict[str, EquipmentNode]
    groups: list[LoopGroup] = field(default_factory=list)
    replacements: dict[str, str] = field(default_factory=dict)

    def resolve(self, equipment_id: str) -> str:
        return self.replacements.get(equipment_id, equipment_id)

    def member_ids(self) -> set[str]:
        return set(self.replacements)


def loop_group_key(node: EquipmentNode) -> str | None:
    name = node.name.lower()
    key: str | None = None
    for pattern, template in _RING_BUS_PATTERNS:
        match = pattern.search(name)
        if match:
            key = template.format(match.group(1).upper())
            break
    if "ats" in name and len(node.sources) > 1:
        key = f"{node.name}-DUAL-SOURCE"
    return key


def detect_loop_groups(
    nodes: Mapping[str, EquipmentNode],
    graph: ConnectionGraph,
    diagnostics: LayoutDiagnostics | None = None,
) -> LoopDetectionResult:
    candidates: dict[str, list[EquipmentNode]] = {}
    for node in nodes.values():
        if node.is_loop_group:
            continue
        key = loop_group_key(node)
        if key is not None:
            candidates.setdefault(key, []).append(node)

    result = LoopDetectionResult(nodes=dict(nodes))
    for key, members in candidates.items():
        if len(members) < 2:
            continue
        group, representative = _build_representative(key, members, graph)
        result.groups.append(group)
        result.nodes[representative.equipment_id] = representative
        for member in members:
            member.loop_member_of = representative.equipment_id
            result.replacements[member.equipment_id] = representative.equipment_id
        if diagnostics is not None:
            diagnostics.record(
                "info",
                "loop.collapsed",
                f"Collapsed {len(members)} members into {representative.name}",
                subject_id=representative.equipment_id,
                logger=logger,
            )

    if result.replacements:
        _rewire_references(result)
    return result


def _member_branch(member: EquipmentNode) -> Branch | None:
    if member.branch is not None:
        return member.branch
    from_label = branch_for_source(member.source_label)
    if from_label is not None:
        return from_label
    for source in member.sources:
        branch = branch_for_source(source)
        if branch is not None:
            return branch
    return None


def _closest_member(members: list[EquipmentNode]) -> EquipmentNode:
    best = members[0]
    for candidate in members[1:]:
        if candidate.level < best.level:
            best = candidate
        elif (
            candidate.level == best.level
            and _member_branch(candidate) == BRANCH_SECONDARY
            and _member_branch(best) != BRANCH_SECONDARY
        ):
            best = candidate
    return best


def _build_representative(
    key: str,
    members: list[EquipmentNode],
    graph: ConnectionGraph,
) -> tuple[LoopGroup, EquipmentNode]:
    by_name = sorted(members, key=lambda member: (member.name, member.sequence))
    start, end = by_name[0], by_name[-1]
    closest = _closest_member(members)

    sources: list[str] = []
    for member in members:
        for source in member.sources:
            if source not in sources:
                sources.append(source)

    parent_id = closest.parent_id or (closest.parent_ids[0] if closest.parent_ids else None)
    member_ids = {member.equipment_id for member in members}
    relation_branch: Branch | None = None
    if parent_id is not None:
        for relation in graph.upstream_of(parent_id):
            if relation.equipment_id in member_ids:
                relation_branch = branch_for_source(relation.source_label)
                break

    branch = _member_branch(closest) or relation_branch
    if branch is None:
        if SECONDARY_SOURCE in sources and PRIMARY_SOURCE not in sources:
            branch = BRANCH_SECONDARY
        elif PRIMARY_SOURCE in sources:
            branch = BRANCH_PRIMARY

    group = LoopGroup(group_key=key, members=tuple(members), start=start, end=end)
    return group, EquipmentNode(
        equipment_id=f"{LOOP_ID_PREFIX}{key}",
        name=f"{start.name} ↔ {end.name}",
        type=LOOP_GROUP_TYPE,
        level=closest.level,
        sequence=min(member.sequence for member in members),
        parent_id=parent_id,
        source_label=closest.source_label,
        branch=branch,
        sources=sources,
        parent_ids=[parent_id] if parent_id else [],
        connection_type=closest.connection_type,
        path=closest.path,
        loop_group=group,
    )


def _rewire_references(result: LoopDetectionResult) -> None:
    for node in result.nodes.values():
        if node.is_suppressed:
            continue
        if node.parent_id is not None:
            replacement = result.resolve(node.parent_id)
            node.parent_id = replacement if replacement != node.equipment_id else None
        rewired: list[str] = []
        for parent_id in node.parent_ids:
            replacement = result.resolve(parent_id)
            if replacement != node.equipment_id and replacement not in rewired:
                rewired.append(replacement)
        node.parent_ids = rewired
        alternates: list[AlternateParent] = []
        for alternate in node.alternate_parents:
            replacement = result.resolve(alternate.parent_id)
            if replacement == node.equipment_id:
                continue
            rewritten = AlternateParent(
                parent_id=replacement,
                source_label=alternate.source_label,
                connection_type=alternate.connection_type,
            )
            if rewritten not in alternates:
                alternates.append(rewritten)
        node.alternate_parents = alternates

    # Parents are re-leveled before their children.
    ordered = sorted(
        (node for node in result.nodes.values() if not node.is_suppressed),
        key=lambda node: (node.level, node.sequence),
    )
    for node in ordered:
        if node.parent_id is None:
            continue
        parent = result.nodes.get(node.parent_id)
        if parent is None or parent.is_suppressed:
            continue
        node.level = parent.level + 1

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from domain.diagnostics import LayoutDiagnostics
from domain.models import (
    ConnectionRecord,
    EquipmentNode,
    EquipmentNotFoundError,
    LayoutConfig,
    LayoutEdge,
    Point,
    PositionedNode,
    Relation,
    UpstreamLayout,
)
from domain.ports.layout import UpstreamLayoutEngine, UpstreamLayoutRequest
from domain.services.build_connection_graph import ConnectionGraph, build_connection_graph
from domain.services.complete_upstream_coverage import complete_upstream_coverage
from domain.services.consolidate_equipment import (
    DEFAULT_CONSOLIDATION_POLICY,
    ConsolidationPolicy,
    consolidate_visits,
)
from domain.services.detect_loop_groups import LoopDetectionResult, detect_loop_groups
from domain.services.traverse_connection_graph import walk_downstream, walk_upstream
from domain.services.validate_layout import LayoutValidationReport, validate_upstream_layout

logger = logging.getLogger(__name__)

SELECTED_STYLE = "selected"
LOOP_GROUP_STYLE = "loop-group"
DOWNSTREAM_STYLE = "downstream"


@dataclass(frozen=True)
class PowerFlowTree:
    selected: EquipmentNode
    nodes: List[PositionedNode]
    edges: List[LayoutEdge]
    upstream: List[EquipmentNode]
    downstream: List[EquipmentNode]
    validation: LayoutValidationReport
    layout: UpstreamLayout
    diagnostics: LayoutDiagnostics = field(default_factory=LayoutDiagnostics)

    def node(self, node_id: str) -> PositionedNode | None:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectedEquipmentId": self.selected.equipment_id,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "validation": self.validation.to_dict(),
            "diagnostics": [event.to_dict() for event in self.diagnostics.events],
        }


class _EdgeCollector:
    def __init__(self) -> None:
        self.edges: List[LayoutEdge] = []
        self._index: Dict[Tuple[str, str], int] = {}

    def add(self, edge: LayoutEdge) -> None:
        key = (edge.source_id, edge.target_id)
        existing_index = self._index.get(key)
        if existing_index is None:
            self._index[key] = len(self.edges)
            self.edges.append(edge)
            return
        existing = self.edges[existing_index]
        if edge.classification == "bypass" and existing.classification != "bypass":
            self.edges[existing_index] = edge


class BuildPowerFlowTree:
    """Runs the whole pipeline for one selected piece of equipment.

    Graph building, both walks, consolidation, ring collapsing and coverage repair
    happen here; the upstream geometry is delegated to the layout engine, and the
    downstream side is laid out as simple centred rows below the selection.
    """

    def __init__(
        self,
        layout_engine: UpstreamLayoutEngine,
        policy: ConsolidationPolicy = DEFAULT_CONSOLIDATION_POLICY,
    ) -> None:
        self._layout_engine = layout_engine
        self._policy = policy

    @property
    def config(self) -> LayoutConfig:
        return self._layout_engine.config

    def build(self, selected_id: str, records: Sequence[ConnectionRecord]) -> PowerFlowTree:
        config = self.config
        diagnostics = LayoutDiagnostics()
        graph = build_connection_graph(records, diagnostics)

        info = graph.find_equipment(selected_id)
        if info is None:
            raise EquipmentNotFoundError(selected_id)
        selected = EquipmentNode(
            equipment_id=info.equipment_id,
            name=info.name,
            type=info.type,
            level=0,
        )

        upstream_visits = [
            visit
            for visit in walk_upstream(
                selected_id, graph, max_depth=config.max_depth, diagnostics=diagnostics
            )
            if visit.equipment_id != selected_id
        ]
        downstream_visits = [
            visit
            for visit in walk_downstream(
                selected_id, graph, max_depth=config.max_depth, diagnostics=diagnostics
            )
            if visit.equipment_id != selected_id
        ]

        upstream = detect_loop_groups(
            consolidate_visits(upstream_visits, self._policy), graph, diagnostics
        )
        complete_upstream_coverage(
            selected_id,
            upstream.nodes,
            graph,
            root_level=selected.level,
            max_depth=config.max_depth,
            replacements=upstream.replacements,
            diagnostics=diagnostics,
        )
        downstream = detect_loop_groups(
            consolidate_visits(downstream_visits, self._policy), graph, diagnostics
        )

        layout = self._layout_engine.build_layout(
            UpstreamLayoutRequest(
                root=selected,
                nodes=upstream.nodes,
                graph=graph,
                replacements=upstream.replacements,
            ),
            diagnostics,
        )
        nodes, edges = self._emit(selected, upstream, downstream, layout, graph, diagnostics)
        lookup = {**upstream.nodes, selected.equipment_id: selected}
        validation = validate_upstream_layout(
            layout,
            lookup,
            config,
            rendered={node.node_id: Point(node.x, node.y) for node in nodes},
        )
        for issue in validation.issues:
            diagnostics.record("warning", "validation.issue", issue, logger=logger)

        logger.info(
            "Built power flow tree for %s: %s nodes, %s edges",
            selected_id,
            len(nodes),
            len(edges),
        )
        return PowerFlowTree(
            selected=selected,
            nodes=nodes,
            edges=edges,
            upstream=_visible(upstream.nodes),
            downstream=_visible(downstream.nodes),
            validation=validation,
            layout=layout,
            diagnostics=diagnostics,
        )

    def _emit(
        self,
        selected: EquipmentNode,
        upstream: LoopDetectionResult,
        downstream: LoopDetectionResult,
        layout: UpstreamLayout,
        graph: ConnectionGraph,
        diagnostics: LayoutDiagnostics,
    ) -> Tuple[List[PositionedNode], List[LayoutEdge]]:
        root_id = selected.equipment_id
        lookup: Dict[str, EquipmentNode] = {**upstream.nodes, root_id: selected}
        nodes: List[PositionedNode] = []
        edges = _EdgeCollector()

        for node_id, placed in layout.tree.nodes.items():
            position = layout.positions.get(node_id)
            equipment = lookup.get(node_id)
            if position is None or equipment is None:
                continue
            if node_id == root_id:
                style = SELECTED_STYLE
            elif equipment.is_loop_group:
                style = LOOP_GROUP_STYLE
            else:
                style = f"upstream-{placed.branch}"
            nodes.append(_positioned(equipment, position, style))

        for node in _visible(upstream.nodes):
            if node.equipment_id not in layout.positions:
                diagnostics.record(
                    "info",
                    "layout.unplaced",
                    f"{node.name} is not reachable from the placement tree",
                    subject_id=node.equipment_id,
                    logger=logger,
                )

        for node_id, placed in layout.tree.nodes.items():
            parent_id = placed.parent_id
            if parent_id is None or node_id not in layout.positions:
                continue
            relation = _find_relation(graph, lookup, parent_id, node_id)
            equipment = lookup[node_id]
            edges.add(
                LayoutEdge(
                    edge_id=f"{parent_id}-{node_id}",
                    source_id=parent_id,
                    target_id=node_id,
                    classification=(
                        relation.connection_type if relation else equipment.connection_type
                    ),
                    source_label=relation.source_label if relation else equipment.source_label,
                )
            )
            if placed.is_lateral:
                feed = _find_relation(graph, lookup, node_id, parent_id)
                edges.add(
                    LayoutEdge(
                        edge_id=f"lateral-return-{node_id}-{parent_id}",
                        source_id=node_id,
                        target_id=parent_id,
                        classification=feed.connection_type if feed else "normal",
                        source_label=feed.source_label if feed else None,
                    )
                )

        for node_id in layout.tree.nodes:
            equipment = lookup.get(node_id)
            if equipment is None or node_id not in layout.positions:
                continue
            for alternate in equipment.alternate_parents:
                if alternate.parent_id == node_id or alternate.parent_id not in layout.positions:
                    continue
                edges.add(
                    LayoutEdge(
                        edge_id=(
                            f"bypass-{alternate.parent_id}-{node_id}-{alternate.connection_type}"
                        ),
                        source_id=alternate.parent_id,
                        target_id=node_id,
                        classification=alternate.connection_type,
                        source_label=alternate.source_label,
                    )
                )

        rendered = {node.node_id for node in nodes}
        below = [
            node
            for node in _visible(downstream.nodes)
            if node.equipment_id not in rendered
        ]
        below_positions = self._downstream_positions(below, layout.positions[root_id])
        downstream_lookup: Dict[str, EquipmentNode] = {**downstream.nodes, **lookup}
        for node in below:
            position = below_positions[node.equipment_id]
            nodes.append(_positioned(node, position, DOWNSTREAM_STYLE))
            rendered.add(node.equipment_id)

        for node in below:
            parent_id = node.parent_id or root_id
            if parent_id not in rendered:
                continue
            relation = _find_relation(graph, downstream_lookup, node.equipment_id, parent_id)
            edges.add(
                LayoutEdge(
                    edge_id=f"{parent_id}-{node.equipment_id}",
                    source_id=parent_id,
                    target_id=node.equipment_id,
                    classification=relation.connection_type if relation else node.connection_type,
                    source_label=relation.source_label if relation else node.source_label,
                )
            )

        return nodes, edges.edges

    def _downstream_positions(
        self,
        below: List[EquipmentNode],
        root: Point,
    ) -> Dict[str, Point]:
        config = self.config
        rows: Dict[int, List[EquipmentNode]] = {}
        for node in below:
            rows.setdefault(node.level, []).append(node)

        # Rows never sit closer than the vertical collision clearance.
        row_step = max(
            config.level_spacing, config.node_size.height + config.collision_vertical_gap
        )
        positions: Dict[str, Point] = {}
        for level, row in rows.items():
            row.sort(key=lambda item: (item.sequence, item.equipment_id))
            start_x = config.center.x - (len(row) - 1) * config.node_pitch / 2
            y = root.y + level * row_step
            for index, node in enumerate(row):
                positions[node.equipment_id] = Point(start_x + index * config.node_pitch, y)
        return positions


def _visible(nodes: Mapping[str, EquipmentNode]) -> List[EquipmentNode]:
    return sorted(
        (node for node in nodes.values() if not node.is_suppressed),
        key=lambda node: (node.level, node.sequence, node.equipment_id),
    )


def _positioned(equipment: EquipmentNode, position: Point, style: str) -> PositionedNode:
    return PositionedNode(
        node_id=equipment.equipment_id,
        x=position.x,
        y=position.y,
        label=equipment.label(),
        style_class=style,
    )


def _member_ids(equipment_id: str, lookup: Mapping[str, EquipmentNode]) -> List[str]:
    equipment = lookup.get(equipment_id)
    if equipment is not None and equipment.loop_group is not None:
        return equipment.loop_group.member_ids()
    return [equipment_id]


def _find_relation(
    graph: ConnectionGraph,
    lookup: Mapping[str, EquipmentNode],
    fed_id: str,
    feeder_id: str,
) -> Relation | None:
    """Raw relation in which ``feeder_id`` feeds ``fed_id``, looking through rings."""
    feeders = set(_member_ids(feeder_id, lookup))
    for member_id in _member_ids(fed_id, lookup):
        for relation in graph.upstream_of(member_id):
            if relation.equipment_id in feeders:
                return relation
    return None

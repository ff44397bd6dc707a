from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, List

from domain.models import EquipmentNode, LayoutConfig, Point, UpstreamLayout
from domain.services.category_alignment import expected_y
from domain.services.layout_geometry import find_collisions


@dataclass(frozen=True)
class LayoutValidationReport:
    is_valid: bool
    total_nodes: int
    collision_count: int = 0
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": list(self.issues),
            "totalNodes": self.total_nodes,
            "collisionCount": self.collision_count,
        }


def validate_upstream_layout(
    layout: UpstreamLayout,
    lookup: Mapping[str, EquipmentNode],
    config: LayoutConfig,
    rendered: Mapping[str, Point] | None = None,
) -> LayoutValidationReport:
    """Check row alignment, lateral pairing and overlaps without changing the layout.

    ``rendered`` holds every emitted position, downstream rows included; overlaps
    are counted across it when given.
    """
    issues: List[str] = []
    # Expected rows are read in tree order so partners resolve before their storage.
    for node_id in layout.tree.nodes:
        position = layout.positions.get(node_id)
        if position is None:
            continue
        expected = expected_y(
            node_id,
            layout.tree,
            lookup,
            layout.positions,
            layout.baselines,
            config,
        )
        if expected is None:
            continue
        if abs(position.y - expected) > config.baseline_tolerance:
            issues.append(
                f"Baseline drift detected for {_name(node_id, lookup)} ({node_id}): "
                f"expected {expected}, got {position.y}"
            )

    for node_id, placed in layout.tree.nodes.items():
        parent = layout.positions.get(node_id)
        if parent is None:
            continue
        for index, lateral_id in enumerate(placed.lateral):
            position = layout.positions.get(lateral_id)
            if position is None:
                continue
            expected_x = parent.x - (index + 1) * config.lateral_offset
            if (
                abs(position.x - expected_x) > config.baseline_tolerance
                or abs(position.y - parent.y) > config.baseline_tolerance
            ):
                issues.append(
                    f"Lateral pairing broken for {_name(lateral_id, lookup)} ({lateral_id}): "
                    f"expected x {expected_x}, got {position.x}"
                )

    checked = {**layout.positions, **rendered} if rendered is not None else layout.positions
    collisions = find_collisions(checked, config)
    if collisions:
        issues.append(f"{len(collisions)} collisions detected after resolution")

    return LayoutValidationReport(
        is_valid=not issues,
        total_nodes=len(layout.positions),
        collision_count=len(collisions),
        issues=issues,
    )


def _name(node_id: str, lookup: Mapping[str, EquipmentNode]) -> str:
    equipment = lookup.get(node_id)
    return equipment.name if equipment else node_id

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from domain.models import LayoutConfig, PlacementNode, PlacementTree, Point, SubtreeSpan
from domain.services.layout_geometry import level_baseline

from adapters.layout.spans import group_width, leaf_span

SlotDirection = Literal[-1, 1]


@dataclass(frozen=True)
class LayoutMetrics:
    max_row_width: float
    max_row_count: int
    first_split_level: Optional[int]


def create_level_baselines(tree: PlacementTree, config: LayoutConfig) -> Dict[int, float]:
    root_level = tree.root().level
    root_y = config.center.y
    baselines: Dict[int, float] = {root_level: root_y}
    for placed in tree.nodes.values():
        if placed.level not in baselines:
            baselines[placed.level] = level_baseline(placed.level, root_level, root_y, config)
    return baselines


def row_width(node_count: int, config: LayoutConfig) -> float:
    if node_count <= 1:
        return config.node_size.width
    return config.node_pitch * (node_count - 1)


def compute_layout_metrics(tree: PlacementTree, config: LayoutConfig) -> LayoutMetrics:
    level_counts: Dict[int, int] = {}
    first_split_level: Optional[int] = None
    for placed in tree.nodes.values():
        if not placed.is_lateral:
            level_counts[placed.level] = level_counts.get(placed.level, 0) + 1
        if first_split_level is None and placed.primary and placed.secondary:
            first_split_level = placed.level
    max_row_count = max(level_counts.values(), default=1)
    return LayoutMetrics(
        max_row_width=row_width(max_row_count, config),
        max_row_count=max_row_count,
        first_split_level=first_split_level,
    )


def compute_branch_offset(
    placed: PlacementNode,
    child_levels: List[int],
    metrics: LayoutMetrics,
    config: LayoutConfig,
) -> float:
    if not child_levels:
        return config.branch_offset
    depth_steps = max(1, max(child_levels) - placed.level)
    offset = config.branch_offset + depth_steps * config.branch_spread
    if metrics.first_split_level is not None:
        relative_level = placed.level - metrics.first_split_level
        if relative_level >= 0:
            # Branches below the first split widen with the busiest row.
            widened = metrics.max_row_width * 0.4 + relative_level * config.branch_spread
            offset = max(offset, widened)
    return offset


def compute_group_slots(
    parent_x: float,
    spans: List[SubtreeSpan],
    direction: SlotDirection,
    has_opposite_branch: bool,
    branch_offset: float,
    config: LayoutConfig,
) -> List[float]:
    if not spans:
        return []
    if len(spans) == 1:
        if not has_opposite_branch:
            return [parent_x]
        effective_width = min(spans[0].width, config.node_pitch)
        return [parent_x + direction * (branch_offset + effective_width / 2)]

    width = group_width(spans, config)
    if not has_opposite_branch:
        cursor = parent_x - width / 2
    elif direction == -1:
        cursor = parent_x - branch_offset - width
    else:
        cursor = parent_x + branch_offset

    slots: List[float] = []
    for span in spans:
        slots.append(cursor + span.left_bias)
        cursor += span.width + config.min_gap
    return slots


class PositionAssigner:
    """Places every branch child relative to its parent's x, top-down from the root."""

    def __init__(
        self,
        config: LayoutConfig,
        tree: PlacementTree,
        spans: Mapping[str, SubtreeSpan],
        baselines: Mapping[int, float],
        metrics: LayoutMetrics,
    ) -> None:
        self.config = config
        self.tree = tree
        self.spans = spans
        self.baselines = baselines
        self.metrics = metrics

    def assign(self) -> Dict[str, Point]:
        positions: Dict[str, Point] = {}
        self.assign_subtree(self.tree.root_id, self.config.center.x, positions)
        return positions

    def baseline_y(self, level: int) -> float:
        if level in self.baselines:
            return self.baselines[level]
        root_level = self.tree.root().level
        return level_baseline(level, root_level, self.config.center.y, self.config)

    def assign_subtree(self, node_id: str, x: float, positions: Dict[str, Point]) -> None:
        stack = [(node_id, x)]
        while stack:
            current_id, current_x = stack.pop()
            if current_id in positions:
                continue
            placed = self.tree.get(current_id)
            if placed is None:
                continue
            positions[current_id] = Point(current_x, self.baseline_y(placed.level))

            primary_slots = self._slots(placed, current_x, placed.primary, -1)
            secondary_slots = self._slots(placed, current_x, placed.secondary, 1)
            children = [
                *zip(placed.primary, primary_slots),
                *zip(placed.secondary, secondary_slots),
            ]
            stack.extend(reversed(children))

    def _slots(
        self,
        placed: PlacementNode,
        parent_x: float,
        child_ids: List[str],
        direction: SlotDirection,
    ) -> List[float]:
        fallback = leaf_span(self.config)
        spans = [self.spans.get(child_id, fallback) for child_id in child_ids]
        levels: List[int] = []
        for child_id in child_ids:
            child = self.tree.get(child_id)
            levels.append(child.level if child is not None else placed.level + 1)
        opposite = placed.secondary if direction == -1 else placed.primary
        offset = compute_branch_offset(placed, levels, self.metrics, self.config)
        return compute_group_slots(
            parent_x,
            spans,
            direction,
            bool(opposite),
            offset,
            self.config,
        )


class LateralPlacer:
    """Keeps lateral children on their parent's row, stacked to the parent's left."""

    def __init__(self, config: LayoutConfig, tree: PlacementTree) -> None:
        self.config = config
        self.tree = tree

    def slot(self, parent: Point, index: int) -> Point:
        return Point(parent.x - (index + 1) * self.config.lateral_offset, parent.y)

    def place(
        self,
        positions: Dict[str, Point],
        assigner: PositionAssigner | None = None,
    ) -> None:
        # Tree order is breadth-first, so a parent is settled before its laterals.
        for placed in self.tree.nodes.values():
            if not placed.lateral:
                continue
            parent = positions.get(placed.node_id)
            if parent is None:
                continue
            for index, lateral_id in enumerate(placed.lateral):
                point = self.slot(parent, index)
                if assigner is not None and lateral_id not in positions:
                    assigner.assign_subtree(lateral_id, point.x, positions)
                positions[lateral_id] = point

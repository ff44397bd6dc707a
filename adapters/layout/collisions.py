from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Dict, List, Optional, Tuple

from domain.diagnostics import LayoutDiagnostics
from domain.models import BRANCH_PRIMARY, BRANCH_SECONDARY, LayoutConfig, Point
from domain.services.layout_geometry import Collision, check_collision, find_collisions

from adapters.layout.placement_tree import NodeLayoutInfo

logger = logging.getLogger(__name__)


class CollisionResolver:
    """Separates overlapping nodes horizontally without touching their rows.

    Runs bounded passes that either split a cross-branch pair apart or move the
    less important node outward, then pulls nodes back toward their anchors. Any
    overlap that survives the passes is cleared by a left-to-right sweep per band.

    A node and its lateral children form one block: every shift applies to the
    whole block, so storage stays at its pairing slot beside the switch.
    """

    def __init__(self, config: LayoutConfig, info: Mapping[str, NodeLayoutInfo]) -> None:
        self.config = config
        self.info = info
        self._heads: Dict[str, str] = {node_id: self._find_head(node_id) for node_id in info}

    def _find_head(self, node_id: str) -> str:
        current = node_id
        seen = {current}
        while True:
            item = self.info.get(current)
            if item is None or not item.is_lateral or item.parent_id is None:
                return current
            if item.parent_id in seen:
                return current
            seen.add(item.parent_id)
            current = item.parent_id

    def head(self, node_id: str) -> str:
        return self._heads.get(node_id, node_id)

    def block(self, node_id: str, positions: Mapping[str, Point]) -> List[str]:
        """Positioned members of the block holding ``node_id``, head last."""
        head_id = self.head(node_id)
        members = [
            member_id
            for member_id, member_head in self._heads.items()
            if member_head == head_id and member_id != head_id and member_id in positions
        ]
        members.sort(key=lambda member_id: (positions[member_id].x, member_id))
        if head_id in positions:
            members.append(head_id)
        elif node_id not in members:
            members.append(node_id)
        return members

    def resolve(
        self,
        positions: Mapping[str, Point],
        anchors: Optional[Mapping[str, Point]] = None,
        diagnostics: LayoutDiagnostics | None = None,
    ) -> Dict[str, Point]:
        resolved = dict(positions)
        for _ in range(self.config.max_collision_passes):
            collisions = find_collisions(resolved, self.config)
            if not collisions:
                break
            self._resolve_pass(collisions, resolved)
            if anchors:
                self.clamp_to_anchors(resolved, anchors)

        remaining = find_collisions(resolved, self.config)
        if remaining:
            if diagnostics is not None:
                diagnostics.record(
                    "warning",
                    "collision.sweep",
                    f"{len(remaining)} overlaps left after "
                    f"{self.config.max_collision_passes} passes; sweeping rows",
                    logger=logger,
                )
            self.sweep(resolved)
        return resolved

    def _shift_block(self, node_id: str, dx: float, positions: Dict[str, Point]) -> None:
        if dx == 0:
            return
        for member_id in self.block(node_id, positions):
            current = positions[member_id]
            positions[member_id] = Point(current.x + dx, current.y)

    def _holds_root(self, node_id: str) -> bool:
        return self._is_root(self.head(node_id))

    def _resolve_pass(self, collisions: List[Collision], positions: Dict[str, Point]) -> None:
        ordered = sorted(
            collisions,
            key=lambda item: (-item.magnitude, item.first_id, item.second_id),
        )
        for collision in ordered:
            if self.head(collision.first_id) == self.head(collision.second_id):
                continue
            first = positions[collision.first_id]
            second = positions[collision.second_id]
            overlap = check_collision(first, second, self.config)
            if overlap is None:
                continue
            horizontal = overlap[0]

            split = self._split_pair(collision.first_id, collision.second_id)
            if split is not None:
                left_id, right_id = split
                shift = (horizontal + self.config.collision_padding) / 2
                self._shift_block(left_id, -shift, positions)
                self._shift_block(right_id, shift, positions)
                continue

            mover_id = self.decide_mover(collision.first_id, collision.second_id)
            if mover_id is None:
                continue
            other_id = (
                collision.second_id if mover_id == collision.first_id else collision.first_id
            )
            if self._holds_root(mover_id):
                if self._holds_root(other_id):
                    continue
                mover_id, other_id = other_id, mover_id
            current = positions[mover_id]
            target = self._safe_position(mover_id, current, positions[other_id], horizontal)
            self._shift_block(mover_id, target.x - current.x, positions)

    def _split_pair(self, first_id: str, second_id: str) -> Optional[Tuple[str, str]]:
        first = self.info.get(first_id)
        second = self.info.get(second_id)
        if first is None or second is None:
            return None
        if first.level != second.level or first.branch == second.branch:
            return None
        if first.is_lateral or second.is_lateral:
            return None
        if first.is_root or second.is_root or first.is_power_storage or second.is_power_storage:
            return None
        if self._holds_root(first_id) or self._holds_root(second_id):
            return None
        if first.branch == BRANCH_PRIMARY:
            return first_id, second_id
        return second_id, first_id

    def decide_mover(self, first_id: str, second_id: str) -> Optional[str]:
        first = self.info.get(first_id)
        second = self.info.get(second_id)
        if first is None:
            return first_id
        if second is None:
            return second_id

        if first.is_power_storage != second.is_power_storage:
            mover = second_id if first.is_power_storage else first_id
        elif first.is_root != second.is_root:
            mover = second_id if first.is_root else first_id
        elif first.is_lateral != second.is_lateral:
            mover = first_id if first.is_lateral else second_id
        elif first.level != second.level:
            mover = first_id if first.level > second.level else second_id
        elif first.branch != second.branch:
            mover = first_id if first.branch == BRANCH_SECONDARY else second_id
        else:
            mover = max(first_id, second_id)

        mover_info = self.info.get(mover)
        if mover_info is not None and mover_info.is_root:
            return None
        return mover

    def _safe_position(
        self,
        node_id: str,
        position: Point,
        other: Point,
        horizontal_overlap: float,
    ) -> Point:
        delta = horizontal_overlap + self.config.collision_padding
        info = self.info.get(node_id)
        if info is not None and info.is_lateral:
            move_right = False
        elif info is not None and info.branch == BRANCH_SECONDARY:
            move_right = True
        elif info is not None and info.branch == BRANCH_PRIMARY:
            move_right = False
        else:
            move_right = position.x > other.x
        return Point(position.x + (delta if move_right else -delta), position.y)

    def _slack(self, head_id: str, positions: Mapping[str, Point]) -> Tuple[float, float]:
        gap = self.config.min_gap
        members = [self.info.get(member_id) for member_id in self.block(head_id, positions)]
        if any(item is not None and item.is_lateral and item.is_power_storage for item in members):
            return gap / 3, min(12.0, gap / 10)
        info = self.info.get(head_id)
        if info is not None and info.branch == BRANCH_PRIMARY:
            return gap * 0.8, gap * 0.2
        if info is not None and info.branch == BRANCH_SECONDARY:
            return gap * 0.2, gap * 0.8
        return gap / 2, gap / 2

    def clamp_to_anchors(self, positions: Dict[str, Point], anchors: Mapping[str, Point]) -> None:
        """Pull each block back inside the drift window around its head's anchor."""
        for node_id, anchor in anchors.items():
            current = positions.get(node_id)
            info = self.info.get(node_id)
            if current is None or info is None or info.is_root:
                continue
            if self.head(node_id) != node_id or self._holds_root(node_id):
                continue
            left_slack, right_slack = self._slack(node_id, positions)
            clamped = min(max(current.x, anchor.x - left_slack), anchor.x + right_slack)
            self._shift_block(node_id, clamped - current.x, positions)

    def sweep(self, positions: Dict[str, Point]) -> None:
        """Enforce full pitch between x-neighbouring blocks inside each vertical band.

        The root's block holds its place; blocks right of it are pushed right and
        blocks left of it are pushed left.
        """
        pitch = self.config.node_pitch
        band_height = self.config.node_size.height + self.config.collision_vertical_gap
        ordered = sorted(positions, key=lambda node_id: (positions[node_id].y, node_id))

        bands: List[List[str]] = []
        last_y: float | None = None
        for node_id in ordered:
            y = positions[node_id].y
            if last_y is None or y - last_y >= band_height:
                bands.append([])
            bands[-1].append(node_id)
            last_y = y

        for band in bands:
            units: Dict[str, List[str]] = {}
            for node_id in band:
                units.setdefault(self.head(node_id), []).append(node_id)

            def extent(head_id: str) -> Tuple[float, float]:
                xs = [positions[member_id].x for member_id in units[head_id]]
                return min(xs), max(xs)

            row = sorted(units, key=lambda head_id: (extent(head_id)[0], head_id))
            anchor_index = next(
                (index for index, head_id in enumerate(row) if self._is_root(head_id)),
                0,
            )
            for index in range(anchor_index + 1, len(row)):
                previous_right = extent(row[index - 1])[1]
                current_left = extent(row[index])[0]
                if current_left < previous_right + pitch:
                    self._shift_unit(units[row[index]], previous_right + pitch - current_left, positions)
            for index in range(anchor_index - 1, -1, -1):
                following_left = extent(row[index + 1])[0]
                current_right = extent(row[index])[1]
                if current_right > following_left - pitch:
                    self._shift_unit(
                        units[row[index]], following_left - pitch - current_right, positions
                    )

    @staticmethod
    def _shift_unit(member_ids: List[str], dx: float, positions: Dict[str, Point]) -> None:
        for member_id in member_ids:
            current = positions[member_id]
            positions[member_id] = Point(current.x + dx, current.y)

    def _is_root(self, node_id: str) -> bool:
        info = self.info.get(node_id)
        return info is not None and info.is_root

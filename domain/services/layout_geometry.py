from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from domain.models import LayoutConfig, Point

# Absorbs float error from evenly spaced rows; real overlaps are whole pixels.
_EPSILON = 1e-6


@dataclass(frozen=True)
class Collision:
    first_id: str
    second_id: str
    horizontal: float
    vertical: float

    @property
    def magnitude(self) -> float:
        return self.horizontal + self.vertical


def check_collision(
    first: Point,
    second: Point,
    config: LayoutConfig,
) -> tuple[float, float] | None:
    horizontal_distance = abs(first.x - second.x)
    vertical_distance = abs(first.y - second.y)
    horizontal_overlap = config.node_size.width + config.min_gap - horizontal_distance
    vertical_overlap = config.node_size.height + config.collision_vertical_gap - vertical_distance

    if horizontal_overlap <= _EPSILON:
        return None
    if vertical_distance < config.same_row_tolerance:
        return horizontal_overlap, 0.0
    if vertical_overlap > _EPSILON:
        return horizontal_overlap, vertical_overlap
    return None


def find_collisions(positions: Mapping[str, Point], config: LayoutConfig) -> list[Collision]:
    collisions: list[Collision] = []
    items = list(positions.items())
    for index, (first_id, first) in enumerate(items):
        for second_id, second in items[index + 1 :]:
            overlap = check_collision(first, second, config)
            if overlap is None:
                continue
            collisions.append(
                Collision(
                    first_id=first_id,
                    second_id=second_id,
                    horizontal=overlap[0],
                    vertical=overlap[1],
                )
            )
    return collisions


def level_baseline(level: int, root_level: int, root_y: float, config: LayoutConfig) -> float:
    return root_y - (level - root_level) * config.level_spacing

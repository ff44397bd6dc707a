from __future__ import annotations

import itertools
import logging

from domain.diagnostics import LayoutDiagnostics
from domain.models import Branch, Direction, EquipmentVisit, branch_for_source
from domain.services.build_connection_graph import ConnectionGraph

logger = logging.getLogger(__name__)

MAX_TRAVERSAL_DEPTH = 10


def walk_upstream(
    start_id: str,
    graph: ConnectionGraph,
    *,
    max_depth: int = MAX_TRAVERSAL_DEPTH,
    diagnostics: LayoutDiagnostics | None = None,
) -> list[EquipmentVisit]:
    return _walk(start_id, graph, "upstream", max_depth, diagnostics)


def walk_downstream(
    start_id: str,
    graph: ConnectionGraph,
    *,
    max_depth: int = MAX_TRAVERSAL_DEPTH,
    diagnostics: LayoutDiagnostics | None = None,
) -> list[EquipmentVisit]:
    return _walk(start_id, graph, "downstream", max_depth, diagnostics)


def _walk(
    start_id: str,
    graph: ConnectionGraph,
    direction: Direction,
    max_depth: int,
    diagnostics: LayoutDiagnostics | None,
) -> list[EquipmentVisit]:
    visits: list[EquipmentVisit] = []
    counter = itertools.count()
    # Excluded feeder -> node whose relations were cut.
    truncated: dict[str, str] = {}

    def expand(
        equipment_id: str,
        visited: frozenset[str],
        level: int,
        path: tuple[str, ...],
        branch: Branch | None,
    ) -> None:
        if equipment_id in visited:
            return
        relations = (
            graph.upstream_of(equipment_id)
            if direction == "upstream"
            else graph.downstream_of(equipment_id)
        )
        if not relations:
            return
        if level > max_depth:
            for relation in relations:
                truncated.setdefault(relation.equipment_id, equipment_id)
            return

        current_path = (*path, equipment_id)
        for relation in relations:
            current_branch = branch
            if direction == "upstream" and current_branch is None:
                current_branch = branch_for_source(relation.source_label)
            # A bypass hop does not mark the current node visited; depth still bounds it.
            if relation.connection_type == "bypass":
                next_visited = visited
            else:
                next_visited = visited | {equipment_id}
            visits.append(
                EquipmentVisit(
                    equipment_id=relation.equipment_id,
                    name=relation.name,
                    type=relation.type,
                    level=level,
                    parent_id=equipment_id,
                    source_label=relation.source_label,
                    branch=current_branch,
                    connection_type=relation.connection_type,
                    path=current_path,
                    sequence=next(counter),
                )
            )
            expand(relation.equipment_id, next_visited, level + 1, current_path, current_branch)

    expand(start_id, frozenset(), 1, (), None)

    if truncated and diagnostics is not None:
        for feeder_id, cut_id in sorted(truncated.items()):
            diagnostics.record(
                "warning",
                "traversal.depth_ceiling",
                f"{direction} traversal excluded {feeder_id} beyond {cut_id} "
                f"after {max_depth} hops",
                subject_id=feeder_id,
                logger=logger,
            )
    return visits


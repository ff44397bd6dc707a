from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List

from domain.diagnostics import LayoutDiagnostics
from domain.models import LayoutConfig, PlacementTree, SubtreeSpan

logger = logging.getLogger(__name__)


def leaf_span(config: LayoutConfig) -> SubtreeSpan:
    half = config.node_size.width / 2
    return SubtreeSpan(width=config.node_size.width, left_bias=half, right_bias=half)


def group_width(spans: List[SubtreeSpan], config: LayoutConfig) -> float:
    if not spans:
        return 0.0
    total = sum(span.width for span in spans)
    return total + config.min_gap * (len(spans) - 1)


def compute_subtree_spans(
    tree: PlacementTree,
    config: LayoutConfig,
    loop_group_ids: FrozenSet[str] = frozenset(),
    diagnostics: LayoutDiagnostics | None = None,
) -> Dict[str, SubtreeSpan]:
    """Post-order horizontal footprint of every placed subtree.

    Primary children extend the left bias and secondary children the right bias.
    Ring representatives keep a compact symmetric span. A node re-entered on the
    current path, or reached past ``span_visit_limit`` frames, falls back to a leaf span.
    """
    spans: Dict[str, SubtreeSpan] = {}
    fallback = leaf_span(config)

    def visit(node_id: str, path: FrozenSet[str]) -> SubtreeSpan:
        if node_id in spans:
            return spans[node_id]
        if node_id in path or len(path) >= config.span_visit_limit:
            if diagnostics is not None:
                diagnostics.record(
                    "warning",
                    "span.guard",
                    f"Span recursion stopped at {node_id}",
                    subject_id=node_id,
                    logger=logger,
                )
            return fallback
        placed = tree.get(node_id)
        if placed is None:
            return fallback

        next_path = path | {node_id}
        for child_id in [*placed.branch_children(), *placed.lateral]:
            spans[child_id] = visit(child_id, next_path)

        primary_width = group_width([spans[child_id] for child_id in placed.primary], config)
        secondary_width = group_width([spans[child_id] for child_id in placed.secondary], config)
        half = config.node_size.width / 2

        if node_id in loop_group_ids:
            widest = max(primary_width, secondary_width)
            constrained = min(max(widest, config.node_size.width), config.node_size.width * 3)
            span = SubtreeSpan(
                width=constrained,
                left_bias=constrained / 2,
                right_bias=constrained / 2,
            )
        else:
            left = max(half, primary_width)
            right = max(half, secondary_width)
            span = SubtreeSpan(width=left + right, left_bias=left, right_bias=right)
        spans[node_id] = span
        return span

    visit(tree.root_id, frozenset())
    return spans

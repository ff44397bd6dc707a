from __future__ import annotations

import logging

from domain.diagnostics import LayoutDiagnostics
from domain.models import LayoutConfig, UpstreamLayout
from domain.ports.layout import UpstreamLayoutEngine, UpstreamLayoutRequest

from adapters.layout.category_baselines import enforce_category_baselines
from adapters.layout.collisions import CollisionResolver
from adapters.layout.level_normalizer import normalize_levels
from adapters.layout.placement_tree import build_layout_info, build_placement_tree
from adapters.layout.positions import (
    LateralPlacer,
    PositionAssigner,
    compute_layout_metrics,
    create_level_baselines,
)
from adapters.layout.spans import compute_subtree_spans

logger = logging.getLogger(__name__)


class PowerFlowLayoutEngine(UpstreamLayoutEngine):
    def __init__(self, config: LayoutConfig | None = None) -> None:
        self.config = config or LayoutConfig()

    def build_layout(
        self,
        request: UpstreamLayoutRequest,
        diagnostics: LayoutDiagnostics,
    ) -> UpstreamLayout:
        config = self.config
        lookup = request.lookup()
        tree = build_placement_tree(
            request.root,
            request.nodes,
            request.graph,
            request.replacements,
            diagnostics,
        )
        info = build_layout_info(tree, lookup)
        baselines = create_level_baselines(tree, config)
        loop_group_ids = frozenset(node_id for node_id, item in info.items() if item.is_loop_group)
        spans = compute_subtree_spans(tree, config, loop_group_ids, diagnostics)
        metrics = compute_layout_metrics(tree, config)

        assigner = PositionAssigner(config, tree, spans, baselines, metrics)
        positions = assigner.assign()
        laterals = LateralPlacer(config, tree)
        laterals.place(positions, assigner)

        normalize_levels(tree, positions, info, config)
        laterals.place(positions)

        anchors = dict(positions)
        resolver = CollisionResolver(config, info)
        positions = resolver.resolve(positions, anchors, diagnostics)

        if config.enforce_category_baselines:
            enforce_category_baselines(tree, positions, lookup, baselines, config)
            positions = resolver.resolve(positions, None, diagnostics)

        # Laterals return to their slots; later moves shift them with their parent.
        laterals.place(positions)
        positions = resolver.resolve(positions, None, diagnostics)

        logger.info(
            "Laid out %s upstream nodes over %s levels for %s",
            len(positions),
            len(baselines),
            request.root.equipment_id,
        )
        return UpstreamLayout(
            tree=tree,
            positions=positions,
            baselines=baselines,
            anchors=anchors,
        )

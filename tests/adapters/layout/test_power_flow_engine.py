from __future__ import annotations

import pytest

from adapters.layout.power_flow import PowerFlowLayoutEngine
from domain.diagnostics import LayoutDiagnostics
from domain.models import EquipmentNode, LayoutConfig
from domain.ports.layout import UpstreamLayoutRequest
from domain.services.build_connection_graph import build_connection_graph
from domain.services.consolidate_equipment import consolidate_visits
from domain.services.traverse_connection_graph import walk_upstream
from tests.helpers.connection_fixtures import switch_with_storage, to_records


def _request() -> UpstreamLayoutRequest:
    graph = build_connection_graph(to_records(switch_with_storage()))
    root = EquipmentNode(equipment_id="R", name="R", type="PDU", level=0)
    nodes = consolidate_visits(walk_upstream("R", graph))
    return UpstreamLayoutRequest(root=root, nodes=nodes, graph=graph)


def test_request_lookup_includes_root() -> None:
    request = _request()

    assert set(request.lookup()) == {"R", "MDS-1", "UPS-1"}


def test_engine_keeps_root_at_center(diagnostics: LayoutDiagnostics) -> None:
    engine = PowerFlowLayoutEngine()

    layout = engine.build_layout(_request(), diagnostics)

    assert layout.positions["R"].x == pytest.approx(400)
    assert layout.positions["R"].y == pytest.approx(300)
    assert layout.baselines[0] == 300
    assert set(layout.positions) == {"R", "MDS-1", "UPS-1"}
    assert set(layout.anchors) == set(layout.positions)


def test_engine_uses_configured_spacing(diagnostics: LayoutDiagnostics) -> None:
    config = LayoutConfig(min_gap=100, enforce_category_baselines=False)
    engine = PowerFlowLayoutEngine(config)

    layout = engine.build_layout(_request(), diagnostics)

    switch = layout.positions["MDS-1"]
    storage = layout.positions["UPS-1"]
    assert switch.x - storage.x == pytest.approx(280)
    assert switch.y == storage.y == pytest.approx(150)

from __future__ import annotations

from domain.diagnostics import LayoutDiagnostics
from domain.models import (
    PLACEHOLDER_NAME,
    PLACEHOLDER_TYPE,
    ConnectionRecord,
    normalize_source_label,
)
from domain.services.build_connection_graph import build_connection_graph, classify_connection
from tests.helpers.connection_fixtures import connection, to_records


def test_records_expand_every_origin_destination_pair() -> None:
    raw = {
        "id": "multi",
        "from": ["A", "B"],
        "to": ["C", "D"],
        "source_number": "S1",
        "from_name": "Feeder",
        "from_type": "PANEL",
        "to_name": "Load",
        "to_type": "PANEL",
    }
    graph = build_connection_graph([ConnectionRecord.from_raw(raw, 0)])

    assert [relation.equipment_id for relation in graph.upstream_of("C")] == ["A", "B"]
    assert [relation.equipment_id for relation in graph.upstream_of("D")] == ["A", "B"]
    assert [relation.equipment_id for relation in graph.downstream_of("A")] == ["C", "D"]
    assert len(graph) == 4
    assert "D" in graph
    assert "Z" not in graph


def test_classification_priority() -> None:
    ups_secondary = ConnectionRecord.from_raw(
        connection("UPS-1", "PANEL-1", source="S2", from_type="UPS"), 0
    )
    ups_to_critical = ConnectionRecord.from_raw(
        connection("UPS-1", "CP-1", from_type="UPS", to_type="CUPP"), 1
    )
    secondary = ConnectionRecord.from_raw(connection("A", "B", source="S2"), 2)
    primary = ConnectionRecord.from_raw(connection("A", "B"), 3)

    assert classify_connection(ups_secondary) == "bypass"
    assert classify_connection(ups_to_critical) == "bypass"
    assert classify_connection(secondary) == "redundant"
    assert classify_connection(primary) == "normal"


def test_malformed_record_degrades_to_placeholders() -> None:
    diagnostics = LayoutDiagnostics()
    raw = {"id": 7, "from": "X", "to": [{"id": "Y"}], "from_name": None, "to_type": ""}
    graph = build_connection_graph([ConnectionRecord.from_raw(raw, 0)], diagnostics)

    origin = graph.find_equipment("X")
    destination = graph.find_equipment("Y")
    assert origin is not None and destination is not None
    assert origin.name == PLACEHOLDER_NAME
    assert destination.type == PLACEHOLDER_TYPE
    assert diagnostics.codes() == ["record.placeholder"]


def test_first_seen_record_names_equipment() -> None:
    records = to_records(
        [
            connection("A", "B", from_name="Alpha"),
            connection("A", "C", from_name="Renamed"),
        ]
    )
    graph = build_connection_graph(reversed(records))

    info = graph.find_equipment("A")
    assert info is not None
    assert info.name == "Alpha"


def test_relation_lookup_by_pair() -> None:
    graph = build_connection_graph(to_records([connection("P2", "R", source="2")]))

    relation = graph.relation("R", "P2")
    assert relation is not None
    assert relation.source_label == "S2"
    assert relation.connection_type == "redundant"
    assert graph.relation("P2", "R") is None


def test_source_label_normalization() -> None:
    assert normalize_source_label("S2") == "S2"
    assert normalize_source_label(" source 2 ") == "S2"
    assert normalize_source_label(2) == "S2"
    assert normalize_source_label("S1") == "S1"
    assert normalize_source_label(None) == "S1"
    assert normalize_source_label("backup") == "S1"

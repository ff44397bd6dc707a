from __future__ import annotations

import pytest

from domain.models import (
    ConnectionRecord,
    EquipmentNode,
    InvalidLayoutConfigError,
    LayoutConfig,
    Size,
)


def test_record_fields_are_coerced() -> None:
    record = ConnectionRecord.from_raw(
        {
            "id": 12,
            "from": ["A", "A", " B "],
            "to": "C",
            "source_number": 2,
            "from_name": ["Feeder A", "ignored"],
            "from_type": "PANEL",
            "to_name": "Load",
            "to_type": None,
        },
        sequence=4,
    )

    assert record.record_id == "12"
    assert record.from_ids == ["A", "B"]
    assert record.to_ids == ["C"]
    assert record.source_label == "S2"
    assert record.from_name == "Feeder A"
    assert record.to_type == "Unknown Type"
    assert record.sequence == 4
    assert record.is_degraded()


def test_layout_config_rejects_non_positive_settings() -> None:
    with pytest.raises(InvalidLayoutConfigError, match="min_gap"):
        LayoutConfig(min_gap=0)
    with pytest.raises(InvalidLayoutConfigError, match="node_size.width"):
        LayoutConfig(node_size=Size(-1, 70))


def test_node_pitch(layout_config: LayoutConfig) -> None:
    assert layout_config.node_pitch == 380
    assert layout_config.lateral_offset == layout_config.node_pitch


def test_resolved_branch_falls_back_to_sources() -> None:
    node = EquipmentNode(equipment_id="X", name="X", type="PANEL", level=1, sources=["S1", "S2"])

    assert node.resolved_branch() == "secondary"
    node.source_label = "S1"
    assert node.resolved_branch() == "primary"
    node.branch = "secondary"
    assert node.resolved_branch() == "secondary"
    assert node.label() == "X\nPANEL"

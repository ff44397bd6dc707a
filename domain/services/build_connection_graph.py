from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from domain.diagnostics import LayoutDiagnostics
from domain.equipment_types import is_critical_panel, is_power_storage
from domain.models import (
    SECONDARY_SOURCE,
    ConnectionRecord,
    ConnectionType,
    EquipmentInfo,
    Relation,
)

logger = logging.getLogger(__name__)


@dataclass
class ConnectionEntry:
    upstream: list[Relation] = field(default_factory=list)
    downstream: list[Relation] = field(default_factory=list)


@dataclass
class ConnectionGraph:
    entries: dict[str, ConnectionEntry] = field(default_factory=dict)
    equipment: dict[str, EquipmentInfo] = field(default_factory=dict)

    def __contains__(self, equipment_id: object) -> bool:
        return equipment_id in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def upstream_of(self, equipment_id: str) -> list[Relation]:
        entry = self.entries.get(equipment_id)
        return entry.upstream if entry else []

    def downstream_of(self, equipment_id: str) -> list[Relation]:
        entry = self.entries.get(equipment_id)
        return entry.downstream if entry else []

    def relation(self, downstream_id: str, upstream_id: str) -> Relation | None:
        """Relation through which ``upstream_id`` feeds ``downstream_id``."""
        for relation in self.upstream_of(downstream_id):
            if relation.equipment_id == upstream_id:
                return relation
        return None

    def find_equipment(self, equipment_id: str) -> EquipmentInfo | None:
        return self.equipment.get(equipment_id)

    def list_equipment(self) -> list[EquipmentInfo]:
        return list(self.equipment.values())


def classify_connection(record: ConnectionRecord) -> ConnectionType:
    if is_power_storage(record.from_type) and record.source_label == SECONDARY_SOURCE:
        return "bypass"
    if is_power_storage(record.from_type) and is_critical_panel(record.to_type):
        return "bypass"
    if record.source_label == SECONDARY_SOURCE:
        return "redundant"
    return "normal"


def build_connection_graph(
    records: Iterable[ConnectionRecord],
    diagnostics: LayoutDiagnostics | None = None,
) -> ConnectionGraph:
    ordered = _ordered_records(records)
    graph = ConnectionGraph()

    for record in ordered:
        if record.is_degraded() and diagnostics is not None:
            diagnostics.record(
                "info",
                "record.placeholder",
                f"Record {record.record_id or record.sequence} is missing name/type fields",
                subject_id=record.record_id or None,
                logger=logger,
            )
        for equipment_id in record.from_ids:
            graph.entries.setdefault(equipment_id, ConnectionEntry())
            graph.equipment.setdefault(
                equipment_id,
                EquipmentInfo(equipment_id, record.from_name, record.from_type),
            )
        for equipment_id in record.to_ids:
            graph.entries.setdefault(equipment_id, ConnectionEntry())
            graph.equipment.setdefault(
                equipment_id,
                EquipmentInfo(equipment_id, record.to_name, record.to_type),
            )

    for record in ordered:
        connection_type = classify_connection(record)
        for from_id in record.from_ids:
            for to_id in record.to_ids:
                graph.entries[from_id].downstream.append(
                    Relation(
                        equipment_id=to_id,
                        name=record.to_name,
                        type=record.to_type,
                        source_label=record.source_label,
                        connection_type=connection_type,
                        sequence=record.sequence,
                    )
                )
                graph.entries[to_id].upstream.append(
                    Relation(
                        equipment_id=from_id,
                        name=record.from_name,
                        type=record.from_type,
                        source_label=record.source_label,
                        connection_type=connection_type,
                        sequence=record.sequence,
                    )
                )

    logger.debug("Built connection graph with %d equipment entries", len(graph))
    return graph


def _ordered_records(records: Iterable[ConnectionRecord]) -> Sequence[ConnectionRecord]:
    # Stable sort keeps caller order for records that share a sequence number.
    return sorted(records, key=lambda record: record.sequence)

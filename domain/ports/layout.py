from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from domain.diagnostics import LayoutDiagnostics
from domain.models import EquipmentNode, LayoutConfig, UpstreamLayout
from domain.services.build_connection_graph import ConnectionGraph


@dataclass(frozen=True)
class UpstreamLayoutRequest:
    root: EquipmentNode
    nodes: Mapping[str, EquipmentNode]
    graph: ConnectionGraph
    replacements: Mapping[str, str] = field(default_factory=dict)

    def lookup(self) -> dict[str, EquipmentNode]:
        return {**self.nodes, self.root.equipment_id: self.root}


class UpstreamLayoutEngine(Protocol):
    config: LayoutConfig

    def build_layout(
        self,
        request: UpstreamLayoutRequest,
        diagnostics: LayoutDiagnostics,
    ) -> UpstreamLayout:
        ...

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

PRIMARY_SOURCE = "S1"
SECONDARY_SOURCE = "S2"
BRANCH_PRIMARY = "primary"
BRANCH_SECONDARY = "secondary"

PLACEHOLDER_NAME = "Unnamed"
PLACEHOLDER_TYPE = "Unknown Type"
LOOP_GROUP_TYPE = "RING BUS"

Branch = Literal["primary", "secondary"]
ConnectionType = Literal["normal", "bypass", "redundant"]
Direction = Literal["upstream", "downstream"]


class EquipmentNotFoundError(LookupError):
    def __init__(self, equipment_id: str) -> None:
        super().__init__(f"Equipment with ID {equipment_id} not found")
        self.equipment_id = equipment_id


class InvalidLayoutConfigError(ValueError):
    pass


class ConnectionSourceError(ValueError):
    pass


def normalize_source_label(value: object) -> str:
    if isinstance(value, bool):
        return PRIMARY_SOURCE
    if isinstance(value, (int, float)):
        return SECONDARY_SOURCE if value == 2 else PRIMARY_SOURCE
    if isinstance(value, str):
        normalized = value.strip().upper()
        if normalized in {"S2", "2", "SOURCE 2"}:
            return SECONDARY_SOURCE
    return PRIMARY_SOURCE


def branch_for_source(label: str | None) -> Branch | None:
    if label == PRIMARY_SOURCE:
        return BRANCH_PRIMARY
    if label == SECONDARY_SOURCE:
        return BRANCH_SECONDARY
    return None


def _normalize_ids(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    ids: list[str] = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("id")
        if item is None:
            continue
        text = str(item).strip()
        if text and text not in ids:
            ids.append(text)
    return ids


def _first_text(value: object) -> str:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return ""
    return str(value).strip()


class ConnectionRecord(BaseModel):
    record_id: str = ""
    from_ids: List[str] = Field(default_factory=list)
    to_ids: List[str] = Field(default_factory=list)
    source_label: str = PRIMARY_SOURCE
    from_name: str = PLACEHOLDER_NAME
    from_type: str = PLACEHOLDER_TYPE
    to_name: str = PLACEHOLDER_NAME
    to_type: str = PLACEHOLDER_TYPE
    sequence: int = 0

    @field_validator("record_id", mode="before")
    @classmethod
    def coerce_record_id(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("from_ids", "to_ids", mode="before")
    @classmethod
    def coerce_ids(cls, value: object) -> list[str]:
        return _normalize_ids(value)

    @field_validator("source_label", mode="before")
    @classmethod
    def coerce_source_label(cls, value: object) -> str:
        return normalize_source_label(value)

    @field_validator("from_name", "to_name", mode="before")
    @classmethod
    def coerce_name(cls, value: object) -> str:
        return _first_text(value) or PLACEHOLDER_NAME

    @field_validator("from_type", "to_type", mode="before")
    @classmethod
    def coerce_type(cls, value: object) -> str:
        return _first_text(value) or PLACEHOLDER_TYPE

    @field_validator("sequence", mode="before")
    @classmethod
    def coerce_sequence(cls, value: object) -> int:
        try:
            return int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0

    @classmethod
    def from_raw(cls, raw: dict[str, Any], sequence: int) -> ConnectionRecord:
        return cls.model_validate(
            {
                "record_id": raw.get("id", raw.get("record_id")),
                "from_ids": raw.get("from", raw.get("from_ids")),
                "to_ids": raw.get("to", raw.get("to_ids")),
                "source_label": raw.get("source_number", raw.get("source_label")),
                "from_name": raw.get("from_name"),
                "from_type": raw.get("from_type"),
                "to_name": raw.get("to_name"),
                "to_type": raw.get("to_type"),
                "sequence": sequence,
            }
        )

    def is_degraded(self) -> bool:
        return PLACEHOLDER_NAME in {self.from_name, self.to_name} or PLACEHOLDER_TYPE in {
            self.from_type,
            self.to_type,
        }


@dataclass(frozen=True)
class Relation:
    equipment_id: str
    name: str
    type: str
    source_label: str
    connection_type: ConnectionType
    sequence: int


@dataclass(frozen=True)
class EquipmentInfo:
    equipment_id: str
    name: str
    type: str


@dataclass(frozen=True)
class EquipmentVisit:
    """One occurrence of equipment reached by the walker along a single path."""

    equipment_id: str
    name: str
    type: str
    level: int
    parent_id: str
    source_label: str
    branch: Branch | None
    connection_type: ConnectionType
    path: tuple[str, ...]
    sequence: int


@dataclass(frozen=True)
class AlternateParent:
    parent_id: str
    source_label: str
    connection_type: ConnectionType


@dataclass(frozen=True)
class LoopGroup:
    group_key: str
    members: tuple[EquipmentNode, ...]
    start: EquipmentNode
    end: EquipmentNode

    def member_ids(self) -> list[str]:
        return [member.equipment_id for member in self.members]


@dataclass
class EquipmentNode:
    equipment_id: str
    name: str
    type: str
    level: int
    sequence: int = 0
    parent_id: Optional[str] = None
    source_label: Optional[str] = None
    branch: Branch | None = None
    sources: List[str] = field(default_factory=list)
    parent_ids: List[str] = field(default_factory=list)
    connection_type: ConnectionType = "normal"
    alternate_parents: List[AlternateParent] = field(default_factory=list)
    path: tuple[str, ...] = ()
    loop_group: LoopGroup | None = None
    loop_member_of: Optional[str] = None

    @property
    def is_loop_group(self) -> bool:
        return self.loop_group is not None

    @property
    def is_suppressed(self) -> bool:
        return self.loop_member_of is not None

    def add_source(self, label: str | None) -> None:
        if label and label not in self.sources:
            self.sources.append(label)

    def add_parent(self, parent_id: str | None) -> None:
        if parent_id and parent_id not in self.parent_ids:
            self.parent_ids.append(parent_id)

    def resolved_branch(self) -> Branch:
        if self.branch is not None:
            return self.branch
        from_label = branch_for_source(self.source_label)
        if from_label is not None:
            return from_label
        if SECONDARY_SOURCE in self.sources:
            return BRANCH_SECONDARY
        return BRANCH_PRIMARY

    def label(self) -> str:
        return f"{self.name}\n{self.type}"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class SubtreeSpan:
    width: float
    left_bias: float
    right_bias: float


@dataclass
class PlacementNode:
    node_id: str
    level: int
    branch: Branch
    parent_id: Optional[str] = None
    is_lateral: bool = False
    primary: List[str] = field(default_factory=list)
    secondary: List[str] = field(default_factory=list)
    lateral: List[str] = field(default_factory=list)

    def branch_children(self) -> List[str]:
        return [*self.primary, *self.secondary]


@dataclass
class PlacementTree:
    root_id: str
    nodes: dict[str, PlacementNode] = field(default_factory=dict)

    def get(self, node_id: str) -> PlacementNode | None:
        return self.nodes.get(node_id)

    def root(self) -> PlacementNode:
        return self.nodes[self.root_id]


@dataclass(frozen=True)
class LayoutConfig:
    node_size: Size = Size(180, 70)
    min_gap: float = 200.0
    level_spacing: float = 150.0
    center: Point = Point(400, 300)
    branch_offset: float = 120.0
    branch_spread: float = 60.0
    collision_padding: float = 12.0
    collision_vertical_gap: float = 50.0
    same_row_tolerance: float = 10.0
    max_collision_passes: int = 10
    max_depth: int = 10
    ancestor_trace_hops: int = 6
    span_visit_limit: int = 50
    category_spacing: float = 150.0
    baseline_tolerance: float = 0.5
    enforce_category_baselines: bool = True

    def __post_init__(self) -> None:
        checks = {
            "node_size.width": self.node_size.width,
            "node_size.height": self.node_size.height,
            "min_gap": self.min_gap,
            "level_spacing": self.level_spacing,
            "category_spacing": self.category_spacing,
            "max_depth": self.max_depth,
            "max_collision_passes": self.max_collision_passes,
            "ancestor_trace_hops": self.ancestor_trace_hops,
            "span_visit_limit": self.span_visit_limit,
        }
        for name, value in checks.items():
            if value <= 0:
                msg = f"Layout setting {name} must be positive, got {value}"
                raise InvalidLayoutConfigError(msg)

    @property
    def node_pitch(self) -> float:
        # Center-to-center distance of two neighbours on one row.
        return self.node_size.width + self.min_gap

    @property
    def lateral_offset(self) -> float:
        return self.node_pitch


@dataclass(frozen=True)
class UpstreamLayout:
    tree: PlacementTree
    positions: dict[str, Point]
    baselines: dict[int, float]
    anchors: dict[str, Point]


@dataclass(frozen=True)
class PositionedNode:
    node_id: str
    x: float
    y: float
    label: str
    style_class: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.node_id,
            "x": self.x,
            "y": self.y,
            "label": self.label,
            "styleClass": self.style_class,
        }


@dataclass(frozen=True)
class LayoutEdge:
    edge_id: str
    source_id: str
    target_id: str
    classification: ConnectionType
    source_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.edge_id,
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "classification": self.classification,
            "sourceLabel": self.source_label,
        }

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.models import LayoutConfig, Point, Size
from domain.services.consolidate_equipment import ConsolidationPolicy

DEFAULT_CONFIG_PATH = Path("config/power_flow.yaml")


class LayoutSettings(BaseModel):
    node_width: float = 180.0
    node_height: float = 70.0
    min_gap: float = 200.0
    level_spacing: float = 150.0
    center_x: float = 400.0
    center_y: float = 300.0
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

    def to_layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            node_size=Size(self.node_width, self.node_height),
            min_gap=self.min_gap,
            level_spacing=self.level_spacing,
            center=Point(self.center_x, self.center_y),
            branch_offset=self.branch_offset,
            branch_spread=self.branch_spread,
            collision_padding=self.collision_padding,
            collision_vertical_gap=self.collision_vertical_gap,
            same_row_tolerance=self.same_row_tolerance,
            max_collision_passes=self.max_collision_passes,
            max_depth=self.max_depth,
            ancestor_trace_hops=self.ancestor_trace_hops,
            span_visit_limit=self.span_visit_limit,
            category_spacing=self.category_spacing,
            baseline_tolerance=self.baseline_tolerance,
            enforce_category_baselines=self.enforce_category_baselines,
        )


class ConsolidationSettings(BaseModel):
    convergence_forces_primary: bool = True
    closer_path_wins: bool = True
    secondary_wins_level_ties: bool = True
    primary_pins_branch: bool = True
    prefer_relation_branch: bool = True

    def to_policy(self) -> ConsolidationPolicy:
        return ConsolidationPolicy(**self.model_dump())


class SourceSettings(BaseModel):
    connections_path: Path = Path("data/connections.json")
    output_dir: Path = Path("data/trees")


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PFT_", env_nested_delimiter="__")

    log_level: str = "WARNING"
    layout: LayoutSettings = LayoutSettings()
    consolidation: ConsolidationSettings = ConsolidationSettings()
    source: SourceSettings = SourceSettings()

    _yaml_path: ClassVar[Path | None] = None

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            msg = f"Unknown log level: {value}"
            raise ValueError(msg)
        return normalized

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("PFT_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous

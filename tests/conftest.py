from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from adapters.layout.power_flow import PowerFlowLayoutEngine
from app.config import AppSettings, SourceSettings
from domain.diagnostics import LayoutDiagnostics
from domain.models import LayoutConfig
from domain.services.build_power_flow_tree import BuildPowerFlowTree


def _clear_pft_env() -> None:
    for key in list(os.environ):
        if key.startswith("PFT_"):
            os.environ.pop(key, None)


_clear_pft_env()


@pytest.fixture(autouse=True)
def clear_pft_env() -> Generator[None, None, None]:
    _clear_pft_env()
    yield
    _clear_pft_env()


@pytest.fixture
def layout_config() -> LayoutConfig:
    return LayoutConfig()


@pytest.fixture
def diagnostics() -> LayoutDiagnostics:
    return LayoutDiagnostics()


@pytest.fixture
def tree_service(layout_config: LayoutConfig) -> BuildPowerFlowTree:
    return BuildPowerFlowTree(PowerFlowLayoutEngine(layout_config))


@pytest.fixture
def app_settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        source=SourceSettings(
            connections_path=tmp_path / "connections.json",
            output_dir=tmp_path / "trees",
        )
    )

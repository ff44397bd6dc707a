from __future__ import annotations

from adapters.filesystem.connection_repository import FileSystemConnectionRepository
from adapters.filesystem.layout_repository import FileSystemLayoutRepository
from adapters.layout.power_flow import PowerFlowLayoutEngine
from app.config import AppSettings
from domain.ports.repositories import ConnectionRepository, LayoutRepository
from domain.services.build_power_flow_tree import BuildPowerFlowTree


def build_tree_service(settings: AppSettings) -> BuildPowerFlowTree:
    engine = PowerFlowLayoutEngine(settings.layout.to_layout_config())
    return BuildPowerFlowTree(engine, settings.consolidation.to_policy())


def build_connection_repository(settings: AppSettings) -> ConnectionRepository:
    return FileSystemConnectionRepository()


def build_layout_repository(settings: AppSettings) -> LayoutRepository:
    return FileSystemLayoutRepository()

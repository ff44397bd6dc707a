from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from app.config import AppSettings, load_settings
from app.wiring import build_connection_repository, build_layout_repository, build_tree_service
from domain.models import (
    ConnectionRecord,
    ConnectionSourceError,
    EquipmentNotFoundError,
    InvalidLayoutConfigError,
)
from domain.services.build_connection_graph import build_connection_graph
from domain.services.build_power_flow_tree import PowerFlowTree

app = typer.Typer(no_args_is_help=True)
console = Console()

_CONFIG_OPTION = typer.Option(None, "--config", help="YAML settings file.")
_CONNECTIONS_OPTION = typer.Option(
    None, "--connections", help="Connection records JSON (defaults to settings)."
)


def _settings(config_path: Optional[Path]) -> AppSettings:
    try:
        settings = load_settings(config_path)
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return settings


def _load_records(settings: AppSettings, connections: Optional[Path]) -> list[ConnectionRecord]:
    path = connections or settings.source.connections_path
    repository = build_connection_repository(settings)
    try:
        return list(repository.load(path))
    except ConnectionSourceError as exc:
        console.print(f"[red]Cannot read connections:[/] {exc}")
        raise typer.Exit(code=1) from exc


def _build_tree(
    settings: AppSettings,
    records: list[ConnectionRecord],
    equipment_id: str,
) -> PowerFlowTree:
    try:
        service = build_tree_service(settings)
        return service.build(equipment_id, records)
    except EquipmentNotFoundError as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    except InvalidLayoutConfigError as exc:
        console.print(f"[red]Invalid layout settings:[/] {exc}")
        raise typer.Exit(code=1) from exc


@app.command("tree")
def tree(
    equipment_id: str = typer.Argument(..., help="Selected equipment id."),
    connections: Optional[Path] = _CONNECTIONS_OPTION,
    output: Optional[Path] = typer.Option(
        None, "--output", help="Write the tree JSON here (defaults to the output directory)."
    ),
    config_path: Optional[Path] = _CONFIG_OPTION,
) -> None:
    settings = _settings(config_path)
    records = _load_records(settings, connections)
    result = _build_tree(settings, records, equipment_id)

    target = output or settings.source.output_dir / f"{equipment_id}.json"
    build_layout_repository(settings).save(result.to_dict(), target)
    console.print(
        f"[green]Wrote[/] {target} ({len(result.nodes)} nodes, {len(result.edges)} edges)"
    )
    for event in result.diagnostics.warnings():
        console.print(f"[yellow]{event.code}:[/] {event.message}")


@app.command("equipment")
def equipment(
    connections: Optional[Path] = _CONNECTIONS_OPTION,
    config_path: Optional[Path] = _CONFIG_OPTION,
) -> None:
    settings = _settings(config_path)
    records = _load_records(settings, connections)
    graph = build_connection_graph(records)
    items = graph.list_equipment()
    if not items:
        console.print("[yellow]No equipment found[/]")
        raise typer.Exit(code=0)

    table = Table("ID", "Name", "Type", "Feeds", "Fed by")
    for item in items:
        table.add_row(
            item.equipment_id,
            item.name,
            item.type,
            str(len(graph.downstream_of(item.equipment_id))),
            str(len(graph.upstream_of(item.equipment_id))),
        )
    console.print(table)


@app.command("validate")
def validate(
    equipment_id: str = typer.Argument(..., help="Selected equipment id."),
    connections: Optional[Path] = _CONNECTIONS_OPTION,
    config_path: Optional[Path] = _CONFIG_OPTION,
) -> None:
    settings = _settings(config_path)
    records = _load_records(settings, connections)
    result = _build_tree(settings, records, equipment_id)
    report = result.validation
    if report.is_valid:
        console.print(f"[green]Layout valid:[/] {report.total_nodes} upstream nodes")
        return
    for issue in report.issues:
        console.print(f"[red]{issue}[/]")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

from domain.models import ConnectionRecord


class ConnectionRepository(Protocol):
    def load(self, path: Path) -> Sequence[ConnectionRecord]: ...


class LayoutRepository(Protocol):
    def save(self, payload: Mapping[str, Any], path: Path) -> None: ...

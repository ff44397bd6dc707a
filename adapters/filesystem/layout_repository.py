from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from filelock import FileLock

from adapters.filesystem.json_utils import write_json_atomic
from domain.ports.repositories import LayoutRepository


class FileSystemLayoutRepository(LayoutRepository):
    def save(self, payload: Mapping[str, Any], path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = path.with_suffix(f"{path.suffix}.lock")
        with FileLock(str(lock_path)):
            write_json_atomic(path, dict(payload))

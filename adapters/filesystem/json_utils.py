from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import orjson

from domain.models import ConnectionSourceError

_RECORD_KEYS = ("records", "connections")


def load_json(path: Path) -> Any:
    try:
        return orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as exc:
        msg = f"{path} is not valid JSON: {exc}"
        raise ConnectionSourceError(msg) from exc


def extract_records(payload: Any, path: Path) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in _RECORD_KEYS:
            records = payload.get(key)
            if isinstance(records, list):
                return records
    msg = f"{path} must hold a list of connection records or a 'records' list"
    raise ConnectionSourceError(msg)


def dump_json_bytes(payload: Any) -> bytes:
    try:
        return orjson.dumps(payload, option=orjson.OPT_INDENT_2)
    except TypeError:
        return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_bytes(dump_json_bytes(payload))
    tmp_path.replace(path)

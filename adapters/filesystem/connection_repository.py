from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from adapters.filesystem.json_utils import extract_records, load_json
from domain.models import ConnectionRecord, ConnectionSourceError
from domain.ports.repositories import ConnectionRepository

logger = logging.getLogger(__name__)


class FileSystemConnectionRepository(ConnectionRepository):
    def load(self, path: Path) -> List[ConnectionRecord]:
        if not path.exists():
            msg = f"Connection file not found: {path}"
            raise ConnectionSourceError(msg)
        records: List[ConnectionRecord] = []
        for sequence, raw in enumerate(extract_records(load_json(path), path)):
            if not isinstance(raw, dict):
                logger.warning("Skipping connection record %s in %s: not an object", sequence, path)
                continue
            records.append(ConnectionRecord.from_raw(raw, sequence))
        logger.debug("Loaded %d connection records from %s", len(records), path)
        return records

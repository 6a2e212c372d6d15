from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque


@dataclass
class UploadStore:
    maxlen: int = 200
    _records: Deque[dict[str, Any]] = field(init=False)
    _lock: Lock = field(default_factory=Lock)

    def __post_init__(self) -> None:
        self._records = deque(maxlen=self.maxlen)

    def add_record(self, filename: str, file_size: int, result: dict[str, Any]) -> dict[str, Any]:
        record = {
            "filename": filename,
            "file_size": file_size,
            "recorded_at": datetime.now(timezone.utc).isoformat(),
            **result,
        }
        with self._lock:
            self._records.append(record)
        return record

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            records = list(self._records)
        if limit <= 0:
            return []
        return records[-limit:]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


upload_store = UploadStore()

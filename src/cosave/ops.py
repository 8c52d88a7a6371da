"""Operational utilities for CoSave."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class StructuredLogger:
    """Write JSON lines log entries and mirror them to :mod:`logging`."""

    def __init__(self, *, path: Path | None = None, name: str = "cosave", capacity: int = 500) -> None:
        self.path = path
        self._logger = logging.getLogger(name)
        self._capacity = capacity
        self._entries: list[dict] = []
        self._lock = threading.Lock()

    def log(self, event_type: str, *, level: str = "info", **fields: object) -> dict:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "level": level,
            **fields,
        }
        line = json.dumps(entry, default=str)
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self._capacity:
                del self._entries[: len(self._entries) - self._capacity]
            if self.path:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
        self._logger.log(_LEVELS.get(level, logging.INFO), line)
        return entry

    def warning(self, event_type: str, **fields: object) -> dict:
        return self.log(event_type, level="warning", **fields)

    def error(self, event_type: str, **fields: object) -> dict:
        return self.log(event_type, level="error", **fields)

    def tail(self, limit: int = 50, *, event: Optional[str] = None) -> tuple[dict, ...]:
        with self._lock:
            entries = [entry for entry in self._entries if event is None or entry["event"] == event]
        return tuple(entries[-limit:])


__all__ = ["StructuredLogger"]

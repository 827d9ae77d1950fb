"""Activity events emitted after successful tutor operations."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Protocol

from .errors import ActivityLogError
from .logs import LOGGER
from .models import utc_now_iso

APP_NAME = "WEGEM Learning"


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    type: str
    payload: Dict[str, Any]
    timestamp: str = field(default_factory=utc_now_iso)
    app: str = APP_NAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp,
            "payload": self.payload,
            "app": self.app,
        }


class EventSink(Protocol):
    def emit(self, event: ActivityEvent) -> None:
        ...


class LoggingEventSink:
    """Writes events to the package logger."""

    def emit(self, event: ActivityEvent) -> None:
        LOGGER.info("Activity %s: %s", event.type, json.dumps(event.payload, ensure_ascii=False))


class ActivityLogStore:
    """Persists events to disk as admin notification records."""

    def __init__(self, path: Path, admin_email: str = "") -> None:
        self._path = path
        self._admin_email = admin_email
        self._lock = threading.Lock()

    def load(self) -> List[Dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ActivityLogError("Activity log is corrupted") from exc
        if not isinstance(data, list):
            raise ActivityLogError("Activity log must contain a JSON list")
        return data

    def emit(self, event: ActivityEvent) -> None:
        record = {
            "to": self._admin_email,
            "subject": f"{APP_NAME}: {event.type}",
            "body": json.dumps(event.to_dict(), indent=2, ensure_ascii=False),
            "sentAt": utc_now_iso(),
        }
        tmp_path = self._path.with_suffix(".tmp")
        with self._lock:
            records = self.load()
            records.append(record)
            try:
                tmp_path.write_text(json.dumps(records, indent=2), encoding="utf-8")
                tmp_path.replace(self._path)
            except OSError as exc:  # pragma: no cover - disk failure
                raise ActivityLogError("Could not persist activity log") from exc

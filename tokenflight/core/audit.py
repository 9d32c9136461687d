"""Audit trail for session lifecycle events.

Events never carry token values, only what happened and to which request.
"""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol


class EventType(StrEnum):
    """Types of session audit events."""

    SESSION_STARTED = "session_started"
    SESSION_REFRESHED = "session_refreshed"
    REFRESH_FAILED = "refresh_failed"
    SESSION_ENDED = "session_ended"
    SESSION_CLEARED = "session_cleared"
    REQUEST_QUEUED = "request_queued"
    REQUEST_REPLAYED = "request_replayed"


class AuditBackend(Protocol):
    """Protocol for audit backends."""

    def log(self, event: dict[str, Any]) -> None:
        """Log an audit event."""
        ...


class FileAuditBackend:
    """Append audit events to a JSONL file."""

    def __init__(self, file_path: str | Path) -> None:
        self.file_path = Path(file_path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def log(self, event: dict[str, Any]) -> None:
        with self._lock, open(self.file_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event, default=str) + "\n")


class MemoryAuditBackend:
    """Store audit events in memory (for testing)."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def log(self, event: dict[str, Any]) -> None:
        with self._lock:
            self.events.append(event)

    def get_events(self, event_type: EventType | None = None) -> list[dict[str, Any]]:
        """Get events, optionally filtered by type."""
        with self._lock:
            if event_type is None:
                return list(self.events)
            return [e for e in self.events if e.get("event_type") == event_type.value]


class AuditLogger:
    """Records session events to a backend."""

    def __init__(self, backend: AuditBackend | None = None) -> None:
        self.backend = backend or MemoryAuditBackend()

    def log(self, event_type: EventType, **kwargs: Any) -> dict[str, Any]:
        """Log an audit event and return the event dict."""
        event = {
            "timestamp": datetime.now(UTC).isoformat(),
            "event_type": event_type.value,
            **kwargs,
        }
        self.backend.log(event)
        return event

    def log_request_queued(self, method: str, url: str, queue_depth: int) -> dict[str, Any]:
        return self.log(
            EventType.REQUEST_QUEUED,
            method=method,
            url=url,
            queue_depth=queue_depth,
        )

    def log_refresh_outcome(
        self,
        *,
        succeeded: bool,
        queued: int,
        reason: str | None = None,
        rotated: bool | None = None,
    ) -> dict[str, Any]:
        """Log the settlement of a refresh cycle."""
        if succeeded:
            return self.log(EventType.SESSION_REFRESHED, queued=queued, rotated=rotated)
        return self.log(EventType.REFRESH_FAILED, queued=queued, reason=reason)

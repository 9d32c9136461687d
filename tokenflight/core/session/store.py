"""Session stores.

A store is the only owner of the current Session. Writes replace the whole
snapshot at once, so a reader never observes an access token from one pair
next to a refresh token from another.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from tokenflight.models.session import Session
from tokenflight.utils.files import atomic_write_private

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """Key-value style access to the persisted session."""

    def read(self) -> Session | None:
        """Return the current session, or None when logged out."""
        ...

    def write(self, session: Session) -> None:
        """Replace the current session."""
        ...

    def clear(self) -> None:
        """Forget the current session."""
        ...


class MemorySessionStore:
    """Process-local store; the session lives as long as the object."""

    def __init__(self, initial: Session | None = None) -> None:
        self._session = initial

    def read(self) -> Session | None:
        return self._session

    def write(self, session: Session) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStore:
    """JSON file store that survives process restarts.

    The file holds ``{"accessToken", "refreshToken", "user"}`` with 0600
    permissions. Unreadable content is treated as no session.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> Session | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            session = Session.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None
        return session if session.is_authenticated else None

    def write(self, session: Session) -> None:
        atomic_write_private(self.path, json.dumps(session.to_storage(), indent=2))

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

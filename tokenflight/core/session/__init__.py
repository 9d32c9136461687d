"""Session persistence and invalidation."""

from tokenflight.core.session.invalidator import SessionInvalidator
from tokenflight.core.session.store import FileSessionStore, MemorySessionStore, SessionStore

__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "FileSessionStore",
    "SessionInvalidator",
]

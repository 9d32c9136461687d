"""Terminal path for unrecoverable refresh failures."""

from __future__ import annotations

import logging
from collections.abc import Callable

from tokenflight.core.audit import AuditLogger, EventType
from tokenflight.core.session.store import SessionStore

logger = logging.getLogger(__name__)

SessionEndedListener = Callable[[], object]


class SessionInvalidator:
    """Clears the store and tells the application the session is over.

    Listeners are the application's redirect-to-login hook. They run once
    per failed refresh cycle no matter how many requests were waiting.
    """

    def __init__(self, store: SessionStore, *, audit: AuditLogger | None = None) -> None:
        self._store = store
        self._audit = audit
        self._listeners: list[SessionEndedListener] = []

    def subscribe(self, listener: SessionEndedListener) -> Callable[[], None]:
        """Register *listener* and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def invalidate(self, reason: str) -> None:
        self._store.clear()
        logger.info("Session ended: %s", reason)
        if self._audit is not None:
            self._audit.log(EventType.SESSION_ENDED, reason=reason)

        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Session-ended listener %r failed", listener)

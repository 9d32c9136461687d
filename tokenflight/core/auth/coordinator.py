"""Single-flight refresh coordination.

One coordinator exists per session scope. When a request fails
authentication while the coordinator is IDLE, that request becomes the
trigger: the coordinator flips to REFRESHING and runs exactly one refresh
exchange. Requests that fail authentication while REFRESHING are queued and
replayed in FIFO order once the exchange succeeds, or rejected with the
refresh error once it fails.

All of this runs on one event loop. The IDLE -> REFRESHING transition
happens before the first await, so two tasks can never both start an
exchange.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

import httpx

from tokenflight.core.audit import AuditLogger, EventType
from tokenflight.core.auth.exchange import RefreshExchange
from tokenflight.core.errors import QueueWaitTimeout, RefreshError, RefreshExchangeFailed
from tokenflight.core.session.invalidator import SessionInvalidator
from tokenflight.core.session.store import SessionStore
from tokenflight.models.session import Session

logger = logging.getLogger(__name__)


@dataclass
class OutgoingRequest:
    """A replayable request plus its retry marker."""

    request: httpx.Request
    already_retried: bool = False

    def describe(self) -> str:
        return f"{self.request.method} {self.request.url}"


Resubmit = Callable[[OutgoingRequest], Awaitable[httpx.Response]]


@dataclass
class PendingRequest:
    """A caller parked until the in-flight refresh settles.

    ``request`` is None for callers of ``refresh()`` that joined a cycle
    already in progress; they only need the outcome.
    """

    future: asyncio.Future
    request: OutgoingRequest | None = None
    resubmit: Resubmit | None = None


class RefreshState(StrEnum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class _CoordinatorState:
    phase: RefreshState = RefreshState.IDLE
    queue: deque[PendingRequest] = field(default_factory=deque)


class RefreshCoordinator:
    """Owns the refresh state machine for one session."""

    def __init__(
        self,
        store: SessionStore,
        exchange: RefreshExchange,
        invalidator: SessionInvalidator,
        *,
        queue_timeout: float | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self._store = store
        self._exchange = exchange
        self._invalidator = invalidator
        self._queue_timeout = queue_timeout
        self._audit = audit
        self._state = _CoordinatorState()
        self._replays: set[asyncio.Task] = set()

    @property
    def state(self) -> RefreshState:
        return self._state.phase

    @property
    def is_refreshing(self) -> bool:
        return self._state.phase is RefreshState.REFRESHING

    @property
    def queued(self) -> int:
        return len(self._state.queue)

    async def recover(self, request: OutgoingRequest, resubmit: Resubmit) -> httpx.Response:
        """Resolve an authentication failure for *request*.

        Returns the response of the single post-refresh retry, or raises the
        RefreshError that ended the session.
        """
        request.already_retried = True
        if self.is_refreshing:
            return await self._enqueue(PendingRequest(
                future=asyncio.get_running_loop().create_future(),
                request=request,
                resubmit=resubmit,
            ))

        self._state.phase = RefreshState.REFRESHING
        logger.info("Access token rejected for %s; refreshing session", request.describe())
        await self._run_cycle()
        return await resubmit(request)

    async def refresh(self) -> Session:
        """Refresh outside of any request, sharing an in-flight cycle if one exists."""
        if self.is_refreshing:
            await self._enqueue(PendingRequest(future=asyncio.get_running_loop().create_future()))
            session = self._store.read()
            if session is None:
                raise RefreshExchangeFailed("session ended during refresh")
            return session

        self._state.phase = RefreshState.REFRESHING
        logger.info("Refreshing session on request")
        return await self._run_cycle()

    async def _enqueue(self, pending: PendingRequest) -> httpx.Response | None:
        self._state.queue.append(pending)
        depth = len(self._state.queue)
        if pending.request is not None:
            logger.debug("Queued %s behind in-flight refresh (depth %d)", pending.request.describe(), depth)
            if self._audit is not None:
                self._audit.log_request_queued(
                    pending.request.request.method,
                    str(pending.request.request.url),
                    depth,
                )

        if self._queue_timeout is None:
            return await pending.future
        try:
            return await asyncio.wait_for(pending.future, self._queue_timeout)
        except TimeoutError:
            raise QueueWaitTimeout(
                f"Gave up waiting {self._queue_timeout}s for session refresh"
            ) from None

    async def _run_cycle(self) -> Session:
        current = self._store.read()
        try:
            tokens = await self._exchange.exchange(current)
        except RefreshError as exc:
            self._fail(exc)
            raise
        except asyncio.CancelledError:
            # Settle waiters without ending the session, then let the
            # cancellation through.
            self._fail(RefreshExchangeFailed("refresh interrupted"), invalidate=False)
            raise
        except Exception as exc:
            error = RefreshExchangeFailed(str(exc) or type(exc).__name__)
            self._fail(error)
            raise error from exc

        latest = self._store.read()
        if current is None or latest is None or latest.refresh_token != current.refresh_token:
            # Logged out or replaced mid-exchange; the store is not ours to touch.
            error = RefreshExchangeFailed("session ended during refresh")
            self._fail(error, invalidate=False)
            raise error

        refreshed = latest.with_tokens(tokens)
        self._store.write(refreshed)
        self._succeed(rotated=tokens.refresh_token != current.refresh_token)
        return refreshed

    def _settle(self) -> deque[PendingRequest]:
        """Return to IDLE and hand back the queue in one step."""
        queue = self._state.queue
        self._state = _CoordinatorState()
        return queue

    def _succeed(self, *, rotated: bool) -> None:
        queue = self._settle()
        logger.info("Session refreshed; replaying %d queued request(s)", len(queue))
        if self._audit is not None:
            self._audit.log_refresh_outcome(succeeded=True, queued=len(queue), rotated=rotated)

        for pending in queue:
            if pending.future.done():
                continue
            if pending.request is None or pending.resubmit is None:
                pending.future.set_result(None)
                continue
            task = asyncio.ensure_future(
                self._replay(pending.future, pending.request, pending.resubmit)
            )
            self._replays.add(task)
            task.add_done_callback(self._replays.discard)

    def _fail(self, error: RefreshError, *, invalidate: bool = True) -> None:
        queue = self._settle()
        logger.info("Session refresh failed (%s); rejecting %d queued request(s)", error.reason, len(queue))
        if self._audit is not None:
            self._audit.log_refresh_outcome(succeeded=False, queued=len(queue), reason=error.reason)

        for pending in queue:
            if not pending.future.done():
                pending.future.set_exception(error)
        if invalidate:
            self._invalidator.invalidate(error.reason)

    async def _replay(
        self,
        future: asyncio.Future,
        request: OutgoingRequest,
        resubmit: Resubmit,
    ) -> None:
        if self._audit is not None:
            self._audit.log(EventType.REQUEST_REPLAYED, request=request.describe())
        try:
            response = await resubmit(request)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(response)

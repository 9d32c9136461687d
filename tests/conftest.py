"""Shared fixtures for the tokenflight test suite."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from tests.helpers import BASE_URL, FakeApi, stale_session
from tokenflight.client import SessionClient
from tokenflight.core.audit import AuditLogger, MemoryAuditBackend
from tokenflight.core.session import MemorySessionStore, SessionStore
from tokenflight.utils.config import ClientConfig


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def audit_backend() -> MemoryAuditBackend:
    return MemoryAuditBackend()


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore(stale_session())


@pytest.fixture
def make_client(
    api: FakeApi,
    store: MemorySessionStore,
    audit_backend: MemoryAuditBackend,
) -> Callable[..., SessionClient]:
    """Build a SessionClient wired to the fake API.

    The default store holds a stale access token (``access-0``) with a valid
    refresh token, so the first protected request triggers a refresh.
    """

    def _make(
        *,
        session_store: SessionStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **config: object,
    ) -> SessionClient:
        return SessionClient(
            ClientConfig(base_url=BASE_URL, **config),
            store=session_store if session_store is not None else store,
            transport=transport or api.transport(),
            audit=AuditLogger(audit_backend),
        )

    return _make

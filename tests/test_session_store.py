"""Tests for session stores and the invalidator."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import pytest

from tests.helpers import stale_session
from tokenflight.core.audit import AuditLogger, EventType, MemoryAuditBackend
from tokenflight.core.session import (
    FileSessionStore,
    MemorySessionStore,
    SessionInvalidator,
    SessionStore,
)
from tokenflight.models.session import Session


class TestMemorySessionStore:
    def test_read_write_clear(self) -> None:
        store = MemorySessionStore()
        assert store.read() is None

        store.write(stale_session())
        assert store.read() == stale_session()

        store.clear()
        assert store.read() is None

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MemorySessionStore(), SessionStore)
        assert isinstance(FileSessionStore("unused.json"), SessionStore)


class TestFileSessionStore:
    def test_missing_file_means_no_session(self, tmp_path: Path) -> None:
        assert FileSessionStore(tmp_path / "session.json").read() is None

    def test_round_trip_survives_new_instance(self, tmp_path: Path) -> None:
        path = tmp_path / "state" / "session.json"
        FileSessionStore(path).write(stale_session())

        assert FileSessionStore(path).read() == stale_session()
        raw = json.loads(path.read_text())
        assert set(raw) == {"accessToken", "refreshToken", "user"}

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_is_private(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        FileSessionStore(path).write(stale_session())
        assert os.stat(path).st_mode & 0o777 == 0o600

    def test_write_replaces_whole_snapshot(self, tmp_path: Path) -> None:
        store = FileSessionStore(tmp_path / "session.json")
        store.write(stale_session())
        store.write(Session(access_token="a9", refresh_token="r9"))

        session = store.read()
        assert session is not None
        assert (session.access_token, session.refresh_token, session.user) == ("a9", "r9", None)
        assert list(tmp_path.iterdir()) == [tmp_path / "session.json"]

    @pytest.mark.parametrize(
        "content",
        [
            "not json",
            json.dumps({"accessToken": "a"}),
            json.dumps({"accessToken": None, "refreshToken": None}),
            json.dumps([1, 2]),
        ],
    )
    def test_unusable_content_reads_as_no_session(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "session.json"
        path.write_text(content)
        assert FileSessionStore(path).read() is None

    def test_clear_removes_file_and_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "session.json"
        store = FileSessionStore(path)
        store.write(stale_session())

        store.clear()
        store.clear()

        assert not path.exists()
        assert store.read() is None


class TestSessionInvalidator:
    def test_clears_store_and_notifies_each_listener_once(self) -> None:
        store = MemorySessionStore(stale_session())
        backend = MemoryAuditBackend()
        invalidator = SessionInvalidator(store, audit=AuditLogger(backend))
        calls: list[str] = []
        invalidator.subscribe(lambda: calls.append("first"))
        invalidator.subscribe(lambda: calls.append("second"))

        invalidator.invalidate("Refresh token expired")

        assert store.read() is None
        assert calls == ["first", "second"]
        events = backend.get_events(EventType.SESSION_ENDED)
        assert [e["reason"] for e in events] == ["Refresh token expired"]

    def test_unsubscribe(self) -> None:
        invalidator = SessionInvalidator(MemorySessionStore())
        calls: list[int] = []
        unsubscribe = invalidator.subscribe(lambda: calls.append(1))

        unsubscribe()
        unsubscribe()
        invalidator.invalidate("gone")

        assert calls == []

    def test_failing_listener_does_not_block_others(self, caplog: pytest.LogCaptureFixture) -> None:
        invalidator = SessionInvalidator(MemorySessionStore(stale_session()))
        calls: list[str] = []

        def broken() -> None:
            raise RuntimeError("listener exploded")

        invalidator.subscribe(broken)
        invalidator.subscribe(lambda: calls.append("after"))

        invalidator.invalidate("expired")

        assert calls == ["after"]
        assert "listener" in caplog.text

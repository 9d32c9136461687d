"""Test helpers: an in-process fake API and event-loop utilities."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx

from tokenflight.models.session import Identity, Session

BASE_URL = "https://api.example.com/api"
REFRESH_PATH = "/api/users/refresh-token"


class FakeApi:
    """In-process stand-in for the remote API, served through httpx.MockTransport.

    Tokens come in generations: ``access-N`` pairs with ``refresh-N``. Only the
    current generation's access token is accepted. Tests steer timing with
    ``refresh_gate`` (holds the refresh endpoint) and ``reject_gate`` (holds
    401 responses until released).
    """

    def __init__(self) -> None:
        self.generation = 1
        self.current_refresh = "refresh-1"
        self.refresh_calls = 0
        self.refresh_gate: asyncio.Event | None = None
        self.reject_gate: asyncio.Event | None = None
        self.held_rejections = 0
        self.refresh_failure: tuple[int, dict] | None = None
        self.rotate_refresh = True
        self.enveloped = True
        self.always_unauthorized: set[str] = set()
        self.server_errors: dict[str, int] = {}
        self.log: list[tuple[str, str, str | None]] = []

    @property
    def access_token(self) -> str:
        return f"access-{self.generation}"

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def sent_with(self, token: str) -> list[str]:
        """Paths requested with ``Bearer <token>``, in arrival order."""
        return [path for _method, path, auth in self.log if auth == f"Bearer {token}"]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        auth = request.headers.get("Authorization")
        self.log.append((request.method, path, auth))

        if path == REFRESH_PATH:
            return await self._refresh(request)
        if path in ("/api/users/login", "/api/users/create"):
            return self._login(request)

        if path in self.server_errors:
            return httpx.Response(self.server_errors[path], json={"success": False, "message": "boom"})

        if path in self.always_unauthorized or auth != f"Bearer {self.access_token}":
            if self.reject_gate is not None:
                self.held_rejections += 1
                await self.reject_gate.wait()
            return httpx.Response(401, json={"success": False, "message": "jwt expired"})

        return httpx.Response(200, json={"path": path, "ok": True})

    async def _refresh(self, request: httpx.Request) -> httpx.Response:
        self.refresh_calls += 1
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.refresh_failure is not None:
            status, body = self.refresh_failure
            return httpx.Response(status, json=body)

        body = json.loads(request.content)
        if body.get("refreshToken") != self.current_refresh:
            return httpx.Response(401, json={"success": False, "message": "Invalid refresh token"})

        self.generation += 1
        tokens: dict[str, str] = {"accessToken": self.access_token}
        if self.rotate_refresh:
            self.current_refresh = f"refresh-{self.generation}"
            tokens["refreshToken"] = self.current_refresh
        if self.enveloped:
            return httpx.Response(200, json={"success": True, "data": tokens})
        return httpx.Response(200, json=tokens)

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body.get("password") != "secret":
            return httpx.Response(401, json={"success": False, "message": "Invalid credentials"})
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "accessToken": self.access_token,
                    "refreshToken": self.current_refresh,
                    "user": {"id": "u1", "email": body["email"], "role": "USER"},
                },
            },
        )


def stale_session() -> Session:
    """A session whose access token the API no longer accepts."""
    return Session(
        access_token="access-0",
        refresh_token="refresh-1",
        user=Identity(id="u1", email="user@example.com"),
    )


async def wait_until(predicate: Callable[[], bool], *, turns: int = 1000) -> None:
    """Yield to the event loop until *predicate* holds."""
    for _ in range(turns):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")

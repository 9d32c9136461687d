"""Authenticated HTTP client built on httpx.

SessionClient sends every request through the refresh protocol:

    attach credential -> send -> classify -> (refresh coordinator) -> retry once

It also covers the session lifecycle around it (login, signup, logout and
manual refresh) so applications never write tokens to the store directly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from tokenflight.core.audit import AuditLogger, EventType
from tokenflight.core.auth import (
    CredentialAttacher,
    OutgoingRequest,
    RefreshCoordinator,
    RefreshExchange,
    RetryPolicy,
    Verdict,
)
from tokenflight.core.errors import (
    LoginFailed,
    RequestFailed,
    decode_body,
    server_message,
)
from tokenflight.core.session import MemorySessionStore, SessionInvalidator, SessionStore
from tokenflight.models.session import Identity, Session
from tokenflight.models.tokens import parse_token_response
from tokenflight.utils.config import ClientConfig

logger = logging.getLogger(__name__)


class SessionClient:
    """Async client that keeps one API session authenticated."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        base_url: str | None = None,
        store: SessionStore | None = None,
        http: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        if config is None:
            if base_url is None:
                raise ValueError("SessionClient needs a config or a base_url")
            config = ClientConfig(base_url=base_url)
        self.config = config
        self.store: SessionStore = store if store is not None else MemorySessionStore()
        self.audit = audit

        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_s,
            transport=transport,
            headers={"User-Agent": config.user_agent},
        )

        self.attacher = CredentialAttacher(header=config.auth_header, scheme=config.auth_scheme)
        self.policy = RetryPolicy(config.auth_failure_statuses)
        self.invalidator = SessionInvalidator(self.store, audit=audit)
        self.coordinator = RefreshCoordinator(
            self.store,
            RefreshExchange(self._http, config.url_for(config.refresh_path)),
            self.invalidator,
            queue_timeout=config.queue_timeout_s,
            audit=audit,
        )

    async def __aenter__(self) -> SessionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -- session lifecycle -------------------------------------------------

    @property
    def session(self) -> Session | None:
        return self.store.read()

    def on_session_ended(self, listener: Callable[[], object]) -> Callable[[], None]:
        """Subscribe to unrecoverable refresh failures (e.g. redirect to login)."""
        return self.invalidator.subscribe(listener)

    def set_session(
        self,
        access_token: str,
        refresh_token: str,
        user: Identity | dict[str, Any] | None = None,
    ) -> Session:
        if isinstance(user, dict):
            user = Identity.model_validate(user)
        session = Session(access_token=access_token, refresh_token=refresh_token, user=user)
        self.store.write(session)
        return session

    async def login(self, email: str, password: str) -> Session:
        return await self._start_session(
            self.config.login_path,
            {"email": email, "password": password},
            default_error="Login failed",
        )

    async def signup(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: str | None = None,
    ) -> Session:
        return await self._start_session(
            self.config.signup_path,
            {
                "name": name,
                "email": email,
                "password": password,
                "confirmPassword": password if confirm_password is None else confirm_password,
            },
            default_error="Signup failed",
        )

    async def logout(self) -> None:
        """Forget the session locally. Does not fire session-ended listeners."""
        self.store.clear()
        if self.audit is not None:
            self.audit.log(EventType.SESSION_CLEARED, reason="logout")

    async def refresh(self) -> Session:
        return await self.coordinator.refresh()

    async def _start_session(
        self,
        path: str,
        body: dict[str, Any],
        *,
        default_error: str,
    ) -> Session:
        # Credentials are being established, so this bypasses the refresh protocol.
        try:
            response = await self._http.post(self.config.url_for(path), json=body)
        except httpx.TransportError as exc:
            raise LoginFailed(str(exc) or default_error) from exc
        if response.is_error:
            message = server_message(decode_body(response)) or default_error
            raise LoginFailed(message, status_code=response.status_code)

        try:
            payload = parse_token_response(response.json())
        except ValueError as exc:
            raise LoginFailed(default_error, status_code=response.status_code) from exc
        if payload.refresh_token is None:
            raise LoginFailed(
                f"{default_error}: response carried no refresh token",
                status_code=response.status_code,
            )

        session = self.set_session(payload.access_token, payload.refresh_token, payload.user)
        logger.info("Session started via %s", path)
        if self.audit is not None:
            self.audit.log(
                EventType.SESSION_STARTED,
                path=path,
                user_id=session.user.id if session.user else None,
            )
        return session

    # -- requests ----------------------------------------------------------

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with the session's credentials.

        Raises RequestFailed for error responses the refresh protocol does not
        resolve, and RefreshError when the session could not be refreshed.
        """
        outgoing = OutgoingRequest(
            self._http.build_request(method, self.config.url_for(url), **kwargs)
        )
        return await self._dispatch(outgoing)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def _dispatch(self, outgoing: OutgoingRequest) -> httpx.Response:
        self.attacher.attach(outgoing.request, self.store.read())
        try:
            response = await self._http.send(outgoing.request)
        except httpx.TransportError as exc:
            raise RequestFailed(str(exc) or "Network error") from exc

        verdict = self.policy.classify(response, already_retried=outgoing.already_retried)
        if verdict is Verdict.SUCCESS:
            return response
        if verdict is Verdict.AUTHENTICATION_FAILURE:
            await response.aclose()
            return await self.coordinator.recover(outgoing, self._dispatch)

        await response.aread()
        logger.debug("%s failed with HTTP %s", outgoing.describe(), response.status_code)
        raise RequestFailed.from_response(response)


def describe_failure(exc: RequestFailed) -> str:
    """One-line summary of a failed request for CLI output."""
    detail = server_message(exc.payload) or exc.message
    if exc.status_code is None:
        return detail
    return f"HTTP {exc.status_code}: {detail}"


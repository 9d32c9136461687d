"""Attach the access credential to outgoing requests."""

from __future__ import annotations

import httpx

from tokenflight.models.session import Session


class CredentialAttacher:
    """Writes ``<scheme> <access token>`` into the auth header."""

    def __init__(self, header: str = "Authorization", scheme: str = "Bearer") -> None:
        self.header = header
        self.scheme = scheme

    def attach(self, request: httpx.Request, session: Session | None) -> httpx.Request:
        """Attach the session's access token; leave *request* alone without one."""
        if session is None or not session.access_token:
            return request
        request.headers[self.header] = f"{self.scheme} {session.access_token}"
        return request

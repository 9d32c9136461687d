"""Refresh token exchange against the API's refresh endpoint."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from tokenflight.core.errors import (
    NoRefreshCredential,
    RefreshExchangeFailed,
    decode_body,
    server_message,
)
from tokenflight.models.session import Session, TokenPair
from tokenflight.models.tokens import parse_token_response

logger = logging.getLogger(__name__)


class RefreshExchange:
    """Trades the stored refresh token for a new token pair.

    Uses the bare httpx client: no credential attachment and no retry, so a
    401 from the refresh endpoint can never start another refresh.
    """

    def __init__(self, http: httpx.AsyncClient, url: str, *, field: str = "refreshToken") -> None:
        self._http = http
        self.url = url
        self.field = field

    async def exchange(self, session: Session | None) -> TokenPair:
        if session is None or not session.refresh_token:
            raise NoRefreshCredential()

        try:
            response = await self._http.post(self.url, json={self.field: session.refresh_token})
        except httpx.HTTPError as exc:
            raise RefreshExchangeFailed(str(exc) or "Network error") from exc

        if response.is_error:
            message = server_message(decode_body(response)) or "Token refresh failed"
            raise RefreshExchangeFailed(message, status_code=response.status_code)

        try:
            payload = parse_token_response(response.json())
        except (ValueError, ValidationError) as exc:
            raise RefreshExchangeFailed(
                "Malformed refresh response", status_code=response.status_code
            ) from exc

        rotated = payload.refresh_token is not None
        logger.debug("Refresh exchange succeeded (refresh token rotated: %s)", rotated)
        return TokenPair(
            access_token=payload.access_token,
            refresh_token=payload.refresh_token or session.refresh_token,
        )

"""Token endpoint response shapes.

Refresh, login and signup responses arrive either flat
(``{"accessToken": ..., "refreshToken": ...}``) or wrapped in the API's
conventional envelope (``{"success": true, "data": {...}}``). The union is
resolved once here so callers only ever see a ``TokenPayload``.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter

from tokenflight.models.session import Identity


class TokenPayload(BaseModel):
    """Flat token response body."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(
        validation_alias=AliasChoices("accessToken", "access_token", "token"),
        min_length=1,
    )
    refresh_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("refreshToken", "refresh_token"),
    )
    user: Identity | None = None


class EnvelopedTokens(BaseModel):
    """Token response nested under ``data``."""

    model_config = ConfigDict(extra="ignore")

    data: TokenPayload


TokenResponse = Annotated[
    EnvelopedTokens | TokenPayload,
    Field(union_mode="left_to_right"),
]

_TOKEN_RESPONSE_ADAPTER: TypeAdapter[EnvelopedTokens | TokenPayload] = TypeAdapter(TokenResponse)


def parse_token_response(body: Any) -> TokenPayload:
    """Validate a token response body and return the unwrapped payload.

    Raises pydantic.ValidationError when neither shape matches.
    """
    resolved = _TOKEN_RESPONSE_ADAPTER.validate_python(body)
    if isinstance(resolved, EnvelopedTokens):
        return resolved.data
    return resolved

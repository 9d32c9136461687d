"""Session models shared by the store, the coordinator and the client."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Identity(BaseModel):
    """Authenticated user as returned by the login/signup endpoints."""

    model_config = ConfigDict(extra="allow")

    id: str | int
    email: str | None = None
    role: str | None = None
    name: str | None = None
    phone: str | None = None


class TokenPair(BaseModel):
    """Access/refresh credentials produced by a refresh exchange."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str


class Session(BaseModel):
    """Immutable snapshot of the persisted session.

    Stored with camelCase keys (``accessToken``, ``refreshToken``, ``user``).
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    access_token: str | None = None
    refresh_token: str | None = None
    user: Identity | None = Field(default=None)

    @model_validator(mode="after")
    def _tokens_travel_together(self) -> Session:
        if (self.access_token is None) != (self.refresh_token is None):
            raise ValueError("access_token and refresh_token must be set together")
        return self

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def with_tokens(self, tokens: TokenPair) -> Session:
        """Return a copy carrying *tokens*, keeping the identity."""
        return Session(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=self.user,
        )

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

"""Pydantic data models for tokenflight."""

from tokenflight.models.session import Identity, Session, TokenPair
from tokenflight.models.tokens import (
    EnvelopedTokens,
    TokenPayload,
    TokenResponse,
    parse_token_response,
)

__all__ = [
    # Session
    "Identity",
    "Session",
    "TokenPair",
    # Token responses
    "EnvelopedTokens",
    "TokenPayload",
    "TokenResponse",
    "parse_token_response",
]

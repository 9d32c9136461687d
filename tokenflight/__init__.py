"""Async HTTP session layer with single-flight access token refresh."""

from tokenflight.client import SessionClient
from tokenflight.core.errors import (
    LoginFailed,
    NoRefreshCredential,
    QueueWaitTimeout,
    RefreshError,
    RefreshExchangeFailed,
    RequestFailed,
    TokenflightError,
)
from tokenflight.models import Identity, Session, TokenPair

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "SessionClient",
    "Session",
    "Identity",
    "TokenPair",
    "TokenflightError",
    "RefreshError",
    "NoRefreshCredential",
    "RefreshExchangeFailed",
    "RequestFailed",
    "LoginFailed",
    "QueueWaitTimeout",
]

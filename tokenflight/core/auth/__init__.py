"""Credential attachment and the refresh protocol."""

from tokenflight.core.auth.attacher import CredentialAttacher
from tokenflight.core.auth.coordinator import (
    OutgoingRequest,
    PendingRequest,
    RefreshCoordinator,
    RefreshState,
)
from tokenflight.core.auth.exchange import RefreshExchange
from tokenflight.core.auth.retry_policy import RetryPolicy, Verdict

__all__ = [
    "CredentialAttacher",
    "OutgoingRequest",
    "PendingRequest",
    "RefreshCoordinator",
    "RefreshExchange",
    "RefreshState",
    "RetryPolicy",
    "Verdict",
]

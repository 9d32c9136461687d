"""Exception taxonomy for session handling."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class TokenflightError(Exception):
    """Base class for all tokenflight errors."""


class ConfigError(TokenflightError):
    """Raised when client configuration is missing or invalid."""


class RefreshError(TokenflightError):
    """A refresh cycle could not produce new credentials.

    Every caller waiting on the failed cycle receives the same instance.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NoRefreshCredential(RefreshError):
    """No refresh token is stored, so there is nothing to exchange."""

    def __init__(self, reason: str = "No refresh token found") -> None:
        super().__init__(reason)


class RefreshExchangeFailed(RefreshError):
    """The refresh endpoint was unreachable or rejected the refresh token."""

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.status_code = status_code


class RequestFailed(TokenflightError):
    """A request failed for a reason the refresh protocol does not handle."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any = None,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload
        self.response = response

    @classmethod
    def from_response(cls, response: httpx.Response) -> RequestFailed:
        payload = decode_body(response)
        return cls(
            server_message(payload) or f"HTTP {response.status_code}",
            status_code=response.status_code,
            payload=payload,
            response=response,
        )


class LoginFailed(TokenflightError):
    """Login or signup did not yield a usable session."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class QueueWaitTimeout(TokenflightError):
    """A queued request gave up waiting for the in-flight refresh."""


def decode_body(response: httpx.Response) -> Any:
    """Decode a JSON body, falling back to text."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text or None


def server_message(payload: Any) -> str | None:
    """Extract the API's ``message`` field from an error payload."""
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None

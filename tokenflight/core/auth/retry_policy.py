"""Response classification for the refresh protocol."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

import httpx


class Verdict(StrEnum):
    """What the client should do with a response."""

    SUCCESS = "success"
    AUTHENTICATION_FAILURE = "authentication_failure"
    OTHER_FAILURE = "other_failure"


class RetryPolicy:
    """Decides whether a response may go to the refresh coordinator.

    A request that was already retried after a refresh never qualifies
    again; its second authentication failure goes back to the caller.
    """

    def __init__(self, auth_failure_statuses: Iterable[int] = (401,)) -> None:
        self.auth_failure_statuses = frozenset(auth_failure_statuses)

    def classify(self, response: httpx.Response | None, *, already_retried: bool) -> Verdict:
        if response is None:
            return Verdict.OTHER_FAILURE
        if not response.is_error:
            return Verdict.SUCCESS
        if response.status_code in self.auth_failure_statuses and not already_retried:
            return Verdict.AUTHENTICATION_FAILURE
        return Verdict.OTHER_FAILURE

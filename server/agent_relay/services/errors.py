from __future__ import annotations

from typing import Any

import httpx

from agent_relay.core.exceptions import AppError


class RelayError(AppError):
    """Base class for failures talking to the remote agent platform."""

    status_code = 502
    error_type = "RELAY_ERROR"


class AuthError(RelayError):
    error_type = "AUTH_ERROR"


class SessionCreationError(RelayError):
    error_type = "SESSION_CREATION_ERROR"


class DispatchError(RelayError):
    error_type = "DISPATCH_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        rejected: bool = False,
        session_expired: bool = False,
    ) -> None:
        super().__init__(message, details=details)
        # rejected: the platform answered with an error status, so the message was not accepted.
        self.rejected = rejected
        self.session_expired = session_expired


class MalformedResponseError(RelayError):
    error_type = "MALFORMED_RESPONSE"


class UpstreamTimeoutError(RelayError):
    status_code = 504
    error_type = "UPSTREAM_TIMEOUT"


def response_details(response: httpx.Response) -> dict[str, Any]:
    """Capture the remote status and body for operator logs."""
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text[:500]
    return {"status_code": response.status_code, "body": body}

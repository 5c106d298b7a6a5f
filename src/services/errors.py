"""
Failures raised by the downstream service clients.

Every client error derives from `UpstreamError` so the incident pipeline can
turn any of them into an `error` outcome with a readable message. A project
that does not exist in SonarQube is not an error: the client returns `None`.
"""

from typing import Optional


class UpstreamError(Exception):
    """Base class for failures talking to SonarQube or ServiceNow."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service} {message}")


class UpstreamRejected(UpstreamError):
    """The service answered with a non-success status."""

    def __init__(self, service: str, status_code: int, reason: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason
        detail = f"error: {status_code}"
        if reason:
            detail = f"{detail} - {reason}"
        super().__init__(service, detail)


class AuthExpired(UpstreamRejected):
    """The bearer token was refused (HTTP 401)."""

    def __init__(self, service: str, reason: Optional[str] = None):
        super().__init__(service, 401, reason)


class Unreachable(UpstreamError):
    """No response was received (connection failure or timeout)."""

    def __init__(self, service: str, message: str):
        super().__init__(service, f"unreachable: {message}")


class MalformedResponse(UpstreamError):
    """The call succeeded but the expected payload is missing."""

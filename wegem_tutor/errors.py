"""Exception hierarchy for configuration, completion and activity log failures."""

from __future__ import annotations

from typing import Optional


class ConfigurationError(RuntimeError):
    """Raised when the application configuration is invalid."""


class ActivityLogError(RuntimeError):
    """Raised when the activity log cannot be read or persisted."""


class APIError(RuntimeError):
    """Generic completion failure encompassing transport, HTTP or schema issues."""

    kind = "api"


class TransportError(APIError):
    """No response was received (DNS, connection refused, timeout)."""

    kind = "transport"


class HTTPStatusError(APIError):
    """The completion endpoint answered with a non-2xx status."""

    kind = "http_status"

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.detail = detail
        message = f"Completion endpoint returned HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ResponseFormatError(APIError):
    """Raised when the endpoint returns an unexpected schema."""

    kind = "malformed"

"""
Error taxonomy for the Coach API.

Only errors raised before the relay starts streaming reach the caller. Once
bytes are flowing, decode anomalies and persistence failures are absorbed by
the background accumulator and only logged.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base exception rendered to callers as JSON ``{"error": message}``"""

    code = "RELAY_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(RelayError):
    """A required credential or URL is missing from the environment"""

    code = "CONFIGURATION_ERROR"
    status_code = 500


class InvalidChatRequest(RelayError):
    """The chat turn is malformed (no messages, empty role, bad JSON)"""

    code = "INVALID_REQUEST"
    status_code = 400


class UpstreamRateLimited(RelayError):
    """AI gateway answered 429; the caller should retry later"""

    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message)


class UpstreamQuotaExceeded(RelayError):
    """AI gateway answered 402; credits are exhausted"""

    code = "QUOTA_EXCEEDED"
    status_code = 402

    def __init__(self, message: str = "Payment required. Please add credits to your workspace."):
        super().__init__(message)


class UpstreamProtocolError(RelayError):
    """Any other upstream failure: unexpected status or missing body"""

    code = "UPSTREAM_ERROR"
    status_code = 500

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message, details={"upstream_status": upstream_status})
        self.upstream_status = upstream_status


class PersistenceFailure(RelayError):
    """The message store rejected or failed a read/write"""

    code = "PERSISTENCE_FAILURE"
    status_code = 500


class LivestreamError(RelayError):
    """Livestream bookkeeping failed (missing title, unknown stream, ...)"""

    code = "LIVESTREAM_ERROR"
    status_code = 400

"""Relay error taxonomy.

Every failure of a single relay attempt is one of these. Each carries the HTTP
status it maps to and renders its own client-facing JSON body. None of them
is retried.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for failures of one relay request."""

    status_code: int = 500
    message: str = "Internal relay error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.message)
        self.detail = detail

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.detail:
            body["detail"] = self.detail
        return body


class MalformedRequest(RelayError):
    """Inbound body is not a JSON object of the expected shape."""

    status_code = 400
    message = "Cannot parse JSON body"

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class InvalidEncoding(RelayError):
    """The ``data`` field is not valid base64."""

    status_code = 400
    message = "Invalid base64 data"


class MissingCredential(RelayError):
    """No API key is configured. Never exposes more than a generic message."""

    status_code = 500
    message = "Gemini API key is not configured"

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class UpstreamUnreachable(RelayError):
    """Transport failure or timeout talking to the upstream API."""

    status_code = 502
    message = "Gemini API request failed"


class UpstreamError(RelayError):
    """Upstream answered with a non-2xx status."""

    status_code = 502
    message = "Gemini API returned non-2xx status"

    def __init__(self, upstream_status: int):
        super().__init__(f"Gemini API responded with HTTP {upstream_status}")
        self.upstream_status = upstream_status

    def to_body(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "status": self.upstream_status,
            "detail": self.detail,
        }


class UpstreamMalformedResponse(RelayError):
    """Upstream answered 2xx but the body is not a generateContent response."""

    status_code = 502
    message = "Failed to decode Gemini API response"

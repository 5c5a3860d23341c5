"""Error taxonomy shared by the relay endpoint and the stream consumer.

Endpoint-level errors become HTTP error responses. Consumer-level errors
become the terminal state of a stream session and are never raised out of
``StreamSession.wait()``.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for every error raised by the relay and its consumer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(RelayError):
    """Server-side configuration is missing (e.g. no upstream credential)."""


class UpstreamError(RelayError):
    """The relay (or the provider behind it) answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


UpstreamHTTPError = UpstreamError


class TransportError(RelayError):
    """Network-level failure before or during the stream."""


class AbortedByUser(RelayError):
    """The caller cancelled the stream."""

    def __init__(self, message: str = "Stream was stopped by user"):
        super().__init__(message)


class FrameDecodeError(RelayError):
    """A single ``data:`` frame could not be decoded. Skipped, never raised."""

    def __init__(self, payload: str, reason: Optional[str] = None):
        super().__init__(f"Could not decode SSE frame: {reason or 'invalid JSON'}")
        self.payload = payload


class CountryLookupError(RelayError):
    """The country directory could not be queried."""

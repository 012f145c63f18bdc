"""
Error types shared by the gateway and the client.

Every error raised across module boundaries derives from
TalkingCharacterError so the server can map it to a uniform
{"error": message} body and the client can catch one family.
"""

from typing import Optional


class TalkingCharacterError(Exception):
    """
    Base error.

    Attributes:
        message: Human-readable message (sent back as {"error": message})
        status_code: HTTP status to use when surfaced by the gateway
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(TalkingCharacterError):
    """A required request field is missing or malformed."""

    status_code = 400


class UpstreamError(TalkingCharacterError):
    """A vendor API answered with a non-2xx status (relayed verbatim)."""

    def __init__(self, message: str, status_code: int, vendor: str = ""):
        self.vendor = vendor
        super().__init__(message, status_code)


class RateLimitError(TalkingCharacterError):
    """Too many requests from the same client in the current window."""

    status_code = 429


class PayloadTooLargeError(TalkingCharacterError):
    status_code = 413


class GatewayError(TalkingCharacterError):
    """The gateway answered a client request with a non-2xx status."""


class BusyError(TalkingCharacterError):
    """A conversation turn is already being processed."""

    status_code = 409


class SpeechError(TalkingCharacterError):
    """A speech producer could not speak the utterance."""


class AvatarError(TalkingCharacterError):
    """The streaming avatar session could not be created or used."""

"""Error taxonomy for job tracking."""

from typing import Optional


class InvalidJobRequest(ValueError):
    """Caller supplied incomplete start parameters; nothing was sent."""


class TransportError(Exception):
    """A call to the scraper API failed on the network or with an error status.

    ``response_message`` holds the server's structured ``message`` field when
    the error response carried one.
    """

    def __init__(
        self,
        message: str,
        response_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.response_message = response_message
        self.status_code = status_code


class RealtimeUnavailable(Exception):
    """The push channel could not be connected."""


def describe_error(exc: BaseException, fallback: str) -> str:
    """Human-readable message: structured server message, then the exception text, then ``fallback``."""
    structured = getattr(exc, "response_message", None)
    if structured:
        return structured
    text = str(exc)
    return text if text else fallback

"""Error types for the fetch client."""

from enum import Enum
from typing import Any

from fetcher.constants import PREVIEW_KEEP_LENGTH, PREVIEW_MAX_LENGTH
from fetcher.models import FetchRequest, FetchResponse


class FetchErrorClass(str, Enum):
    """Classification of fetch errors for metrics and reporting.

    - RETRYABLE_TRANSPORT: Transport failure that exhausted its retry budget
    - TERMINAL_TRANSPORT: Refused, unreachable or redirect-looping, never retried
    - HANG_UP: Remote closed the socket without sending a response
    - DECODING: Charset or JSON/XML failure while decoding a forced type
    - UNKNOWN: Unclassified error
    """

    RETRYABLE_TRANSPORT = "RETRYABLE_TRANSPORT"
    TERMINAL_TRANSPORT = "TERMINAL_TRANSPORT"
    HANG_UP = "HANG_UP"
    DECODING = "DECODING"
    UNKNOWN = "UNKNOWN"


def preview_text(text: str) -> str:
    """Shorten text for error messages.

    Args:
        text: Offending text.

    Returns:
        The text itself, or its first 29 characters followed by `...`
        when it is longer than 32 characters.
    """
    if len(text) > PREVIEW_MAX_LENGTH:
        return text[:PREVIEW_KEEP_LENGTH] + "..."
    return text


class DecodingError(Exception):
    """Raised when a forced response type cannot be produced.

    Never downgraded: callers that asked for `text` or `json` always see it.
    When raised out of a dispatch, `request` and `response` are filled in
    the same way as on DispatchError.
    """

    def __init__(
        self,
        message: str,
        encoding: str | None = None,
        preview: str | None = None,
    ) -> None:
        """Initialize the decoding error.

        Args:
            message: Human-readable error message.
            encoding: Charset or response type that was attempted.
            preview: Truncated snippet of the offending text.
        """
        super().__init__(message)
        self.error_class = FetchErrorClass.DECODING
        self.message = message
        self.encoding = encoding
        self.preview = preview
        self.request: FetchRequest | None = None
        self.response: FetchResponse | None = None

    def to_dict(self) -> dict[str, str | None]:
        """Convert error to dictionary for logging."""
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "encoding": self.encoding,
            "preview": self.preview,
        }


class DispatchError(Exception):
    """Final rejection of a dispatch.

    Carries the request as it was last sent (with the last substituted URL)
    and the last response, if any attempt produced one. The transport
    exception that caused the rejection is chained as `__cause__`.
    """

    def __init__(
        self,
        message: str,
        request: FetchRequest,
        response: FetchResponse | None = None,
        attempts: int = 1,
        error_class: FetchErrorClass = FetchErrorClass.UNKNOWN,
    ) -> None:
        """Initialize the dispatch error.

        Args:
            message: Human-readable error message.
            request: Final request.
            response: Last response, or None.
            attempts: Number of transport invocations made.
            error_class: Classification of the failure.
        """
        super().__init__(message)
        self.message = message
        self.request = request
        self.response = response
        self.attempts = attempts
        self.error_class = error_class

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "url": self.request.url,
            "method": self.request.method,
            "status": self.response.status if self.response else None,
            "attempts": self.attempts,
        }


class RetryableTransportError(DispatchError):
    """Transport failure of a retryable kind whose budget ran out."""


class TerminalTransportError(DispatchError):
    """Transport failure that is never retried."""

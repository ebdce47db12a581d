"""Data models for requests, responses and retry behavior."""

import random
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fetcher.constants import (
    DEFAULT_INITIAL_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_METHOD,
    DEFAULT_TIMEOUT_SECONDS,
    HANG_UP_MAX_RETRIES,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    RETRYABLE_STATUSES,
)


HeaderValue = str | list[str]


class ResponseType(str, Enum):
    """Decoded shape of a response body.

    - TEXT: Decoded string
    - JSON: Parsed JSON (or XML converted to an object tree)
    - BUFFER: Raw bytes
    """

    TEXT = "text"
    JSON = "json"
    BUFFER = "buffer"


class FailureKind(str, Enum):
    """Classification of a transport exception for retry decisions.

    - HANG_UP: Remote closed the socket without a response
    - UNRETRYABLE: Refused connection, redirect loop, unreachable host
    - OTHER: Anything else, retried while budget remains
    """

    HANG_UP = "HANG_UP"
    UNRETRYABLE = "UNRETRYABLE"
    OTHER = "OTHER"


class ProxyAuth(BaseModel):
    """Credentials for an authenticating proxy."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str
    password: str = ""


class ProxyConfig(BaseModel):
    """Proxy server location.

    `protocol` keeps the trailing colon (`http:` / `https:`) the way
    `urllib.parse` scheme values are rendered in URLs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    protocol: str = "http:"
    host: Annotated[str, Field(min_length=1)]
    port: Annotated[int, Field(ge=0, le=65535)]
    auth: ProxyAuth | None = None

    @field_validator("protocol")
    @classmethod
    def normalize_protocol(cls, v: str) -> str:
        """Accept `http`, `http:` or `http://` spellings."""
        v = v.lower().rstrip("/")
        return v if v.endswith(":") else f"{v}:"


class FetchRequest(BaseModel):
    """One logical fetch intent.

    Mutable on purpose: the dispatch engine rewrites `url` and the `referer`
    header on every attempt when magic variables are enabled.
    """

    model_config = ConfigDict(extra="forbid")

    url: Annotated[str, Field(min_length=1)]
    method: str = DEFAULT_METHOD
    headers: dict[str, HeaderValue] = Field(default_factory=dict)
    cookies: list[str] = Field(default_factory=list)
    data: Any = None
    timeout: Annotated[float, Field(gt=0)] = DEFAULT_TIMEOUT_SECONDS
    retries: Annotated[int, Field(ge=0)] = 0
    proxy: str | ProxyConfig | None = None
    response_type: ResponseType | None = None
    response_charset: str | None = None
    max_redirects: Annotated[int, Field(ge=0)] = DEFAULT_MAX_REDIRECTS

    @field_validator("headers", mode="before")
    @classmethod
    def lower_header_keys(cls, v: Any) -> Any:
        """Store header names lower-cased; the last write wins."""
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(key).lower(): value for key, value in v.items()}
        return v

    @field_validator("cookies", mode="before")
    @classmethod
    def default_cookies(cls, v: Any) -> Any:
        """Treat a missing cookie list as empty."""
        return [] if v is None else v


class FetchResponse(BaseModel):
    """Result of one attempt, normalized for the caller."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    status: int
    status_text: str = ""
    url: str
    headers: dict[str, HeaderValue] = Field(default_factory=dict)
    cookies: list[str] = Field(default_factory=list)
    type: ResponseType
    data: Any = None

    @staticmethod
    def is_ok_status(status: int) -> bool:
        """2xx and 304 count as success."""
        return (
            HTTP_STATUS_OK_MIN <= status < HTTP_STATUS_OK_MAX
            or status == HTTP_STATUS_NOT_MODIFIED
        )


class ContentDescriptor(BaseModel):
    """Media type split into prefix, subtype and charset."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = ""
    prefix: str = ""
    charset: str | None = None


class DecodedBody(BaseModel):
    """Typed value produced by the decoding pipeline."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ResponseType
    data: Any = None


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Controls which outcomes are retried and the backoff strategy.
    Uses exponential backoff: delay = initial_delay_ms * (exponential_base ^ attempt)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    initial_delay_ms: Annotated[int, Field(ge=0, le=60000)] = DEFAULT_INITIAL_DELAY_MS
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = DEFAULT_MAX_DELAY_MS
    exponential_base: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1
    hang_up_max_retries: Annotated[int, Field(ge=0)] = HANG_UP_MAX_RETRIES
    retryable_statuses: frozenset[int] = RETRYABLE_STATUSES

    def should_retry_response(
        self, response: FetchResponse, attempt: int, retries: int
    ) -> bool:
        """Determine if a completed response should be retried.

        Args:
            response: Response of the current attempt.
            attempt: Current attempt number (0-indexed).
            retries: Retry budget of the request.

        Returns:
            True if the request should be retried.
        """
        return (
            not response.ok
            and attempt < retries
            and response.status in self.retryable_statuses
        )

    def should_retry_failure(
        self, kind: FailureKind, attempt: int, retries: int
    ) -> bool:
        """Determine if a failed attempt should be retried.

        Hang-ups ignore the request's budget and use `hang_up_max_retries`.

        Args:
            kind: Classification of the transport exception.
            attempt: Current attempt number (0-indexed).
            retries: Retry budget of the request.

        Returns:
            True if the request should be retried.
        """
        if kind == FailureKind.HANG_UP:
            return attempt < self.hang_up_max_retries
        if kind == FailureKind.UNRETRYABLE:
            return False
        return attempt < retries

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Number of retries already scheduled (0-indexed).

        Returns:
            Delay in milliseconds, never above `max_delay_ms`.
        """
        delay = self.initial_delay_ms * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay_ms)

        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(min(delay + jitter, self.max_delay_ms))

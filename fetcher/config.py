"""Configuration models for the fetch client."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from fetcher.constants import (
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
)
from fetcher.models import RetryPolicy


class FetcherConfig(BaseModel):
    """Configuration for a Fetcher.

    Central configuration for connection pooling, default timeouts,
    browser-like headers and retry policy.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    magic_vars: bool = Field(
        default=False,
        description="Expand {ts}, {ms}, {date}, {rand} in URLs and referers",
    )
    timeout: Annotated[float, Field(gt=0, le=600.0)] = DEFAULT_TIMEOUT_SECONDS
    max_connections: Annotated[int, Field(ge=1, le=1000)] = DEFAULT_MAX_CONNECTIONS
    verify_tls: bool = Field(
        default=False,
        description="Verify server certificates; crawlers usually accept any",
    )
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    accept_language: Annotated[str, Field(min_length=1)] = DEFAULT_ACCEPT_LANGUAGE
    strict_decoding: bool = Field(
        default=False,
        description="Raise instead of falling back to bytes when auto-detection fails",
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)

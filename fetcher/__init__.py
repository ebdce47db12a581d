"""Browser-like HTTP fetch client for crawlers.

This package provides:
- A dispatch engine retrying any transport with exponential backoff
- Content-type classification with Accept fallback
- Charset-aware decoding into text, JSON (XML included) or bytes
- Magic variables ({ts}, {ms}, {date}, {rand}) re-rendered per attempt
- A pooled, proxy-aware Fetcher that sends Chrome-like headers
"""

from fetcher.classify import classify, extract_content_type
from fetcher.client import ClientPool, Fetcher, fetch, get_system_locale
from fetcher.config import FetcherConfig
from fetcher.decode import decode, detect_charset, finalize_response, parse_xml
from fetcher.dispatch import Transport, classify_failure, dispatch, prepare_request
from fetcher.errors import (
    DecodingError,
    DispatchError,
    FetchErrorClass,
    RetryableTransportError,
    TerminalTransportError,
)
from fetcher.magic_vars import resolve_magic_vars
from fetcher.metrics import FetchMetrics
from fetcher.models import (
    ContentDescriptor,
    DecodedBody,
    FailureKind,
    FetchRequest,
    FetchResponse,
    ProxyAuth,
    ProxyConfig,
    ResponseType,
    RetryPolicy,
)
from fetcher.settings import FetcherSettings, get_settings


__all__ = [
    # Client
    "Fetcher",
    "ClientPool",
    "fetch",
    "get_system_locale",
    # Engine
    "dispatch",
    "prepare_request",
    "classify_failure",
    "Transport",
    # Decoding
    "classify",
    "extract_content_type",
    "decode",
    "detect_charset",
    "parse_xml",
    "finalize_response",
    "resolve_magic_vars",
    # Config
    "FetcherConfig",
    "FetcherSettings",
    "get_settings",
    # Models
    "FetchRequest",
    "FetchResponse",
    "ContentDescriptor",
    "DecodedBody",
    "ProxyConfig",
    "ProxyAuth",
    "ResponseType",
    "FailureKind",
    "RetryPolicy",
    # Errors
    "DispatchError",
    "RetryableTransportError",
    "TerminalTransportError",
    "DecodingError",
    "FetchErrorClass",
    # Metrics
    "FetchMetrics",
]

"""Observability helpers for the fetch client."""

from fetcher.observability.logging import (
    bind_crawl_context,
    clear_crawl_context,
    configure_from_settings,
    configure_logging,
    get_logger,
)


__all__ = [
    "bind_crawl_context",
    "clear_crawl_context",
    "configure_from_settings",
    "configure_logging",
    "get_logger",
]

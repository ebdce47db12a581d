"""Browser-like HTTP client built on the dispatch engine."""

import locale
import mimetypes
import os
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any
from urllib.parse import urlsplit

import httpx
import structlog

from fetcher.classify import classify
from fetcher.config import FetcherConfig
from fetcher.constants import DEFAULT_LOCALE
from fetcher.cookies import merge_cookie_header
from fetcher.decode import decode
from fetcher.dispatch import dispatch
from fetcher.headers import (
    capitalize_headers,
    first_value,
    redact_headers,
    redact_url_credentials,
)
from fetcher.models import FetchRequest, FetchResponse, HeaderValue, ProxyConfig
from fetcher.proxy import (
    construct_proxy,
    proxy_url,
    proxy_url_with_auth,
    strip_proxy_prefix,
)


logger = structlog.get_logger()

_LOCALE_ENV_VARS = ("LC_ALL", "LC_MESSAGES", "LANG", "LANGUAGE")
_NEUTRAL_LOCALES = frozenset({"", "C", "POSIX"})


@lru_cache(maxsize=1)
def get_system_locale() -> str:
    """Return the operating system language as a tag like `en-US`.

    Environment variables are consulted first, then the `locale` module.
    """
    for var in _LOCALE_ENV_VARS:
        value = os.environ.get(var, "")
        candidate = value.split(":")[0].split(".")[0].split("@")[0]
        if candidate not in _NEUTRAL_LOCALES:
            return candidate.replace("_", "-")

    try:
        language = locale.getlocale()[0]
    except ValueError:
        language = None
    if language and language not in _NEUTRAL_LOCALES:
        return language.replace("_", "-")
    return DEFAULT_LOCALE


@dataclass
class ClientPool:
    """Pooled HTTP clients shared by every dispatch of one Fetcher.

    One keep-alive client per (proxy URL, redirect limit) pair, created on
    first use and kept until `close()`. The direct connection uses a proxy
    URL of None.
    """

    max_connections: int
    verify_tls: bool = False
    _clients: dict[tuple[str | None, int], httpx.Client] = field(
        default_factory=dict, init=False
    )
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def get(self, proxy: ProxyConfig | None, max_redirects: int) -> httpx.Client:
        """Get (or create) the client for a proxy and redirect limit.

        Args:
            proxy: Proxy to route through, or None for direct connections.
            max_redirects: Maximum redirects the client follows.

        Returns:
            The pooled httpx client.
        """
        key = (proxy_url(proxy) if proxy else None, max_redirects)

        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._create(proxy, max_redirects)
                self._clients[key] = client
                logger.debug(
                    "pooled_client_created",
                    component="fetcher",
                    proxy=key[0],
                    max_redirects=max_redirects,
                )
            return client

    def _create(self, proxy: ProxyConfig | None, max_redirects: int) -> httpx.Client:
        limits = httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_connections,
        )
        return httpx.Client(
            limits=limits,
            verify=self.verify_tls,
            follow_redirects=True,
            max_redirects=max_redirects,
            proxy=proxy_url_with_auth(proxy) if proxy else None,
        )

    @property
    def proxy_urls(self) -> list[str]:
        """Proxy URLs that currently have a pooled client."""
        with self._lock:
            return sorted({key[0] for key in self._clients if key[0] is not None})

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def close(self) -> None:
        """Close every pooled client."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()


def _header_items(headers: Mapping[str, HeaderValue]) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    for name, value in headers.items():
        values = value if isinstance(value, list) else [value]
        items.extend((name, str(v)) for v in values)
    return items


def _response_headers(headers: httpx.Headers) -> dict[str, HeaderValue]:
    result: dict[str, HeaderValue] = {}
    for name in headers.keys():  # noqa: SIM118
        if name == "set-cookie":
            result[name] = headers.get_list(name)
        else:
            result[name] = headers[name]
    return result


class Fetcher:
    """HTTP client that behaves like a browser for crawlers.

    Provides fetches with:
    - Chrome-like default headers and system locale negotiation
    - Cookies given as Set-Cookie strings
    - Per-request proxies with pooled connections
    - Retries with exponential backoff
    - Typed, charset-aware response decoding
    """

    def __init__(
        self,
        config: FetcherConfig | None = None,
        pool: ClientPool | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the fetcher.

        Args:
            config: Fetcher configuration.
            pool: Client pool to share; a private one is created by default.
            sleep: Delay function used between retries.
        """
        self._config = config or FetcherConfig()
        self._pool = pool or ClientPool(
            max_connections=self._config.max_connections,
            verify_tls=self._config.verify_tls,
        )
        self._sleep = sleep
        self._log = logger.bind(component="fetcher")

    @property
    def config(self) -> FetcherConfig:
        """Get the fetcher configuration."""
        return self._config

    @property
    def pool(self) -> ClientPool:
        """Get the client pool."""
        return self._pool

    def fetch(
        self,
        target: str | FetchRequest | Mapping[str, Any],
        **options: Any,
    ) -> FetchResponse:
        """Fetch a resource.

        Args:
            target: URL, FetchRequest, or mapping of request fields.
            **options: Request fields overriding those of `target`.

        Returns:
            FetchResponse with the decoded body.

        Raises:
            DispatchError: If the resource could not be fetched.
            DecodingError: If a forced response type could not be produced.
        """
        if isinstance(target, str):
            fields: dict[str, Any] = {"url": target}
        elif isinstance(target, FetchRequest):
            fields = target.model_dump(exclude_unset=True)
        else:
            fields = dict(target)
        fields.update(options)

        if fields.get("timeout") is None:
            fields["timeout"] = self._config.timeout

        request = FetchRequest.model_validate(fields)
        return dispatch(
            request,
            self.request,
            self._config.magic_vars,
            policy=self._config.retry_policy,
            sleep=self._sleep,
        )

    def request(self, request: FetchRequest) -> FetchResponse:
        """Send one attempt with browser-like headers.

        This is the transport handed to the dispatch engine.

        Args:
            request: Prepared request.

        Returns:
            FetchResponse for whatever status the server answered with.
        """
        parsed = urlsplit(request.url)

        headers: dict[str, HeaderValue] = {
            "accept-encoding": "gzip, deflate",
            "accept-language": self._config.accept_language,
            "cache-control": "no-cache",
            "connection": "keep-alive",
            "pragma": "no-cache",
            "user-agent": self._config.user_agent,
        }
        headers.update({k: v for k, v in request.headers.items() if v})

        if parsed.scheme == "http":
            headers["upgrade-insecure-requests"] = "1"

        if request.cookies:
            headers["cookie"] = merge_cookie_header(
                first_value(headers.get("cookie")), request.cookies
            )

        if not headers.get("accept"):
            headers["accept"] = self._guess_accept(parsed.path)

        system_locale = get_system_locale()
        accept_language = first_value(headers["accept-language"]) or ""
        if system_locale not in accept_language:
            headers["accept-language"] = f"{system_locale};q=1,{accept_language}"

        return self.make_request(request.model_copy(update={"headers": headers}))

    def _guess_accept(self, path: str) -> str:
        mime, _ = mimetypes.guess_type(path) if path else (None, None)
        if mime:
            return f"{mime},*/*;q=0.9"
        return "*/*"

    def make_request(self, request: FetchRequest) -> FetchResponse:
        """Send a request exactly as given and decode the response.

        Args:
            request: Request with final headers.

        Returns:
            FetchResponse for the attempt.

        Raises:
            httpx.HTTPError: On transport failures.
            DecodingError: If a forced response type cannot be produced.
        """
        proxy = construct_proxy(request.proxy) if request.proxy else None
        proxy_key = proxy_url(proxy) if proxy else None
        client = self._pool.get(proxy, request.max_redirects)

        body: dict[str, Any] = {}
        if isinstance(request.data, bytes | str):
            body["content"] = request.data
        elif request.data is not None:
            body["json"] = request.data

        self._log.debug(
            "request_sent",
            method=request.method,
            url=redact_url_credentials(request.url),
            proxy=proxy_key,
            headers=redact_headers(request.headers),
        )

        http_response = client.request(
            request.method,
            request.url,
            headers=_header_items(capitalize_headers(request.headers)),
            timeout=request.timeout,
            **body,
        )

        headers = _response_headers(http_response.headers)
        descriptor = classify(headers, request.headers)
        decoded = decode(
            http_response.content,
            descriptor,
            request,
            strict=self._config.strict_decoding,
        )

        return FetchResponse(
            ok=FetchResponse.is_ok_status(http_response.status_code),
            status=http_response.status_code,
            status_text=http_response.reason_phrase,
            url=strip_proxy_prefix(str(http_response.url), proxy_key),
            headers=headers,
            cookies=http_response.headers.get_list("set-cookie"),
            type=decoded.type,
            data=decoded.data,
        )

    def close(self) -> None:
        """Close pooled connections."""
        self._pool.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


_default_fetcher: Fetcher | None = None
_default_lock = threading.Lock()


def get_default_fetcher() -> Fetcher:
    """Get the shared Fetcher with magic variables enabled."""
    global _default_fetcher  # noqa: PLW0603
    with _default_lock:
        if _default_fetcher is None:
            _default_fetcher = Fetcher(FetcherConfig(magic_vars=True))
        return _default_fetcher


def fetch(target: str | FetchRequest | Mapping[str, Any], **options: Any) -> FetchResponse:
    """Fetch a resource with the shared default Fetcher."""
    return get_default_fetcher().fetch(target, **options)

"""Dispatch engine: the retry loop around an injected transport.

The engine does not fetch anything itself. It prepares the request, calls
the transport, decides from the outcome whether to retry, sleeps with
exponential backoff between attempts, and finally returns the last response
or raises a DispatchError describing the last failure.
"""

import time
import uuid
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import structlog

from fetcher.classify import extract_content_type
from fetcher.constants import (
    HANG_UP_MESSAGE,
    HANG_UP_PATTERN,
    QUERY_METHODS,
    UNRETRYABLE_PATTERN,
)
from fetcher.decode import finalize_response
from fetcher.errors import (
    DecodingError,
    DispatchError,
    FetchErrorClass,
    RetryableTransportError,
    TerminalTransportError,
)
from fetcher.headers import first_value, lower_headers, redact_url_credentials
from fetcher.magic_vars import resolve_magic_vars
from fetcher.metrics import FetchMetrics
from fetcher.models import FailureKind, FetchRequest, FetchResponse, RetryPolicy
from fetcher.query import append_query, encode_query
from fetcher.state_machine import DispatchStateMachine


logger = structlog.get_logger()


class Transport(Protocol):
    """Anything that performs one attempt of a request.

    Returns a response for every HTTP status, and raises for failures that
    produced no response at all.
    """

    def __call__(self, request: FetchRequest) -> FetchResponse:
        """Send the request once."""
        ...


def classify_failure(error: BaseException) -> FailureKind:
    """Classify a transport exception by its signature.

    Args:
        error: Exception raised by the transport.

    Returns:
        FailureKind deciding how the exception is retried.
    """
    signature = f"{type(error).__name__}: {error}"
    if HANG_UP_PATTERN.search(signature):
        return FailureKind.HANG_UP
    if UNRETRYABLE_PATTERN.search(signature):
        return FailureKind.UNRETRYABLE
    return FailureKind.OTHER


def prepare_request(request: FetchRequest | Mapping[str, Any]) -> FetchRequest:
    """Normalize a request before its first attempt.

    Returns a copy: headers lower-cased, method upper-cased, and `data`
    folded into the query string for GET/HEAD. List data is keyed by index
    there (`0=a&1=b`). Mapping data sent with a form-urlencoded content type
    becomes a form body.

    Args:
        request: Request model or plain mapping of request fields.

    Returns:
        The prepared request.
    """
    if isinstance(request, FetchRequest):
        prepared = request.model_copy(deep=True)
    else:
        # Fields given as None take their defaults
        fields = {key: value for key, value in request.items() if value is not None}
        prepared = FetchRequest.model_validate(fields)

    prepared.method = prepared.method.upper()
    prepared.headers = lower_headers(prepared.headers)

    data = prepared.data
    if data is None or data == "":
        return prepared

    if isinstance(data, list | tuple) and prepared.method in QUERY_METHODS:
        indexed = {str(index): item for index, item in enumerate(data)}
        prepared.url = append_query(prepared.url, encode_query(indexed))
        prepared.data = None
    elif isinstance(data, Mapping):
        if prepared.method in QUERY_METHODS:
            prepared.url = append_query(prepared.url, encode_query(data))
            prepared.data = None
        else:
            content_type = first_value(prepared.headers.get("content-type"))
            if extract_content_type(content_type).type == "x-www-form-urlencoded":
                prepared.data = encode_query(data, encode_values_only=True)
    elif prepared.method in QUERY_METHODS:
        text = data.decode("utf-8") if isinstance(data, bytes) else str(data)
        prepared.url = append_query(prepared.url, text.lstrip("?&"))
        prepared.data = None

    return prepared


def _rejection(
    error: Exception,
    kind: FailureKind,
    request: FetchRequest,
    response: FetchResponse | None,
    attempts: int,
) -> DispatchError:
    if kind == FailureKind.HANG_UP:
        return RetryableTransportError(
            HANG_UP_MESSAGE.format(url=request.url),
            request=request,
            response=response,
            attempts=attempts,
            error_class=FetchErrorClass.HANG_UP,
        )

    message = str(error) or type(error).__name__
    if kind == FailureKind.UNRETRYABLE:
        return TerminalTransportError(
            message,
            request=request,
            response=response,
            attempts=attempts,
            error_class=FetchErrorClass.TERMINAL_TRANSPORT,
        )
    return RetryableTransportError(
        message,
        request=request,
        response=response,
        attempts=attempts,
        error_class=FetchErrorClass.RETRYABLE_TRANSPORT,
    )


def dispatch(
    request: FetchRequest | Mapping[str, Any],
    transport: Transport,
    magic_vars: bool = False,
    *,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FetchResponse:
    """Run a request through the transport with retries.

    Args:
        request: Request to dispatch; the caller's object is not modified.
        transport: Performs a single attempt.
        magic_vars: Re-render `{ts}`, `{rand}`... in the URL and the
            `referer` header from their original templates on every attempt.
        policy: Retry policy; defaults to 1s initial delay doubling up to 5s.
        sleep: Blocking delay used between attempts, in seconds.

    Returns:
        The last response, post-processed. Non-ok responses that are not
        retried (or ran out of retries) are returned, not raised.

    Raises:
        DispatchError: If the last attempt raised. `request` carries the URL
            that was actually sent and `response` is the last response, if any.
        DecodingError: If the transport could not produce a forced type on
            the last attempt. It is retried like any other failure first.
    """
    policy = policy or RetryPolicy()
    metrics = FetchMetrics.get_instance()
    machine = DispatchStateMachine(uuid.uuid4().hex[:12])
    start_time_ns = time.perf_counter_ns()

    prepared = prepare_request(request)
    url_template = prepared.url
    referer_template = first_value(prepared.headers.get("referer"))

    log = logger.bind(
        component="dispatch",
        dispatch_id=machine.dispatch_id,
        method=prepared.method,
        url=redact_url_credentials(url_template),
    )
    metrics.record_dispatch()
    log.debug("dispatch_start", retries=prepared.retries, magic_vars=magic_vars)

    response: FetchResponse | None = None

    while True:
        machine.to_attempting()
        attempt = machine.attempt

        if magic_vars:
            prepared.url = resolve_magic_vars(url_template)
            if referer_template:
                prepared.headers["referer"] = resolve_magic_vars(referer_template)

        error: Exception | None = None
        kind: FailureKind | None = None
        metrics.record_attempt()

        try:
            response = transport(prepared)
        except Exception as e:  # noqa: BLE001
            error = e
            response = None

        if error is None and response is not None:
            metrics.record_response(response.status)
            should_retry = policy.should_retry_response(
                response, attempt, prepared.retries
            )
        else:
            kind = classify_failure(error)
            should_retry = policy.should_retry_failure(kind, attempt, prepared.retries)
            log.info(
                "attempt_failed",
                attempt=attempt,
                failure_kind=kind.value,
                error=str(error),
                error_type=type(error).__name__,
            )

        if should_retry:
            machine.to_waiting_backoff()
            delay_ms = policy.get_delay_ms(attempt)
            metrics.record_retry()
            log.info(
                "retry_scheduled",
                attempt=attempt,
                delay_ms=delay_ms,
                status=response.status if response else None,
            )
            sleep(delay_ms / 1000.0)
            continue

        duration_ms = _elapsed_ms(start_time_ns)

        if error is None and response is not None:
            machine.to_succeeded()
            metrics.record_success(duration_ms)
            log.info(
                "dispatch_succeeded",
                status=response.status,
                attempts=attempt + 1,
                duration_ms=round(duration_ms, 2),
            )
            return finalize_response(response, prepared)

        machine.to_failed()
        if isinstance(error, DecodingError):
            error.request = prepared
            error.response = response
            metrics.record_failure(error.error_class, duration_ms)
            log.info(
                "dispatch_failed",
                attempts=attempt + 1,
                duration_ms=round(duration_ms, 2),
                **error.to_dict(),
            )
            raise error

        rejection = _rejection(error, kind, prepared, response, attempt + 1)
        metrics.record_failure(rejection.error_class, duration_ms)
        log.info(
            "dispatch_failed",
            duration_ms=round(duration_ms, 2),
            **rejection.to_dict(),
        )
        raise rejection from error


def _elapsed_ms(start_time_ns: int) -> float:
    return (time.perf_counter_ns() - start_time_ns) / 1_000_000

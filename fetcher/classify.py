"""Content-type classification of responses."""

import re
from collections.abc import Mapping

from fetcher.constants import DEFAULT_CONTENT_TYPE
from fetcher.headers import first_value, get_header
from fetcher.models import ContentDescriptor, HeaderValue


_ACCEPT_SPLIT = re.compile(r",\s*")


def extract_content_type(content_type: str | None) -> ContentDescriptor:
    """Split a media type into prefix, subtype and charset.

    `text/html; charset=gbk` becomes prefix `text`, type `html`,
    charset `gbk`. Missing parts stay empty.

    Args:
        content_type: A Content-Type or Accept value.

    Returns:
        ContentDescriptor for the value.
    """
    if not content_type:
        return ContentDescriptor()

    prefix, _, rest = content_type.partition("/")
    subtype, _, params = rest.partition(";")
    charset: str | None = None

    for param in params.split(";"):
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset":
            charset = value.strip().strip('"') or None
            break

    return ContentDescriptor(
        type=subtype.strip(),
        prefix=prefix.strip(),
        charset=charset,
    )


def first_accept_type(accept: str | list[str] | None) -> str | None:
    """Return the first media range of an Accept header."""
    value = first_value(accept)
    if not value:
        return None
    return _ACCEPT_SPLIT.split(value)[0]


def classify(
    response_headers: Mapping[str, HeaderValue] | None,
    request_headers: Mapping[str, HeaderValue] | None,
) -> ContentDescriptor:
    """Describe the body of a response.

    The response's Content-Type wins; without it the first media range the
    request accepted is assumed, and without that `text/plain; charset=UTF-8`.

    Args:
        response_headers: Headers of the response.
        request_headers: Headers the request was sent with.

    Returns:
        ContentDescriptor with type, prefix and optional charset.
    """
    content_type = first_value(get_header(response_headers, "content-type"))
    if not content_type:
        content_type = (
            first_accept_type(get_header(request_headers, "accept"))
            or DEFAULT_CONTENT_TYPE
        )
    return extract_content_type(content_type)

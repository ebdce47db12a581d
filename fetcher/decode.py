"""Decoding pipeline turning raw response bytes into typed values.

Two modes:
- Forced: the caller set `response_type`; failures raise DecodingError.
- Auto-detect: the type follows the content descriptor; failures silently
  downgrade to the raw bytes.
"""

import codecs
import json
import re
from typing import Any
from xml.etree.ElementTree import Element

import defusedxml.ElementTree as DefusedET
import structlog
from charset_normalizer import from_bytes

from fetcher.classify import extract_content_type, first_accept_type
from fetcher.constants import (
    EAST_ASIAN_CODEPAGES,
    EAST_ASIAN_LANGUAGE_HINTS,
    TEXT_PREFIXES,
)
from fetcher.errors import DecodingError, preview_text
from fetcher.headers import first_value, get_header
from fetcher.metrics import FetchMetrics
from fetcher.models import (
    ContentDescriptor,
    DecodedBody,
    FetchRequest,
    FetchResponse,
    ResponseType,
)


logger = structlog.get_logger()

# Charsets whose Python codec is narrower than what servers actually send
_CHARSET_ALIASES: dict[str, str] = {
    "gb2312": "gb18030",
    "gbk": "gb18030",
    "x-gbk": "gb18030",
    "cp936": "gb18030",
    "x-sjis": "shift_jis",
}

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")

# Key holding the text of an element that also has attributes or children
XML_TEXT_KEY = "_"


def is_east_asian(accept_language: str | None) -> bool:
    """Check whether an Accept-Language asks for Chinese, Japanese or Korean."""
    if not accept_language:
        return False
    lowered = accept_language.lower()
    return any(hint in lowered for hint in EAST_ASIAN_LANGUAGE_HINTS)


def detect_charset(raw: bytes, accept_language: str | None = None) -> str | None:
    """Guess the charset of a byte string.

    When the reader prefers an East-Asian language, candidates are first
    limited to CJK code pages, falling back to the general detector.

    Args:
        raw: Bytes to inspect.
        accept_language: Accept-Language of the request.

    Returns:
        A Python codec name, or None if nothing plausible was found.
    """
    if is_east_asian(accept_language):
        match = from_bytes(raw, cp_isolation=EAST_ASIAN_CODEPAGES).best()
        if match is not None:
            return match.encoding

    match = from_bytes(raw).best()
    return match.encoding if match is not None else None


def decode_bytes(raw: bytes, charset: str) -> str:
    """Decode bytes with a charset label as sent by servers.

    Args:
        raw: Bytes to decode.
        charset: Charset label, e.g. `UTF-8`, `gb2312`.

    Returns:
        Decoded text; undecodable sequences become U+FFFD.

    Raises:
        LookupError: If the charset is unknown.
    """
    label = charset.strip().strip('"').lower()
    codec = codecs.lookup(_CHARSET_ALIASES.get(label, label))
    return raw.decode(codec.name, errors="replace")


def _element_to_value(element: Element) -> Any:
    node: dict[str, Any] = {}

    for name, value in element.attrib.items():
        node[_local_name(name)] = value

    for child in element:
        key = _local_name(child.tag)
        value = _element_to_value(child)
        if key in node:
            existing = node[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[key] = [existing, value]
        else:
            node[key] = value

    text = (element.text or "") + "".join(child.tail or "" for child in element)
    if not node:
        return text if text.strip() else ""
    if text.strip():
        node[XML_TEXT_KEY] = text
    return node


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_xml(text: str) -> Any:
    """Convert an XML document to an object tree.

    Attributes are merged into their element, repeated children become
    lists, an element with only text becomes that text, and the root element
    is unwrapped so `<root><foo>Hello</foo></root>` gives `{"foo": "Hello"}`.

    Args:
        text: XML document.

    Returns:
        Equivalent object tree.

    Raises:
        xml.etree.ElementTree.ParseError: If the document is malformed.
    """
    root = DefusedET.fromstring(_XML_DECLARATION.sub("", text, count=1))
    return _element_to_value(root)


def _resolve_charset(
    raw: bytes,
    descriptor: ContentDescriptor,
    request: FetchRequest,
) -> str | None:
    if request.response_charset:
        return request.response_charset
    if descriptor.charset:
        return descriptor.charset
    accept_language = first_value(get_header(request.headers, "accept-language"))
    return detect_charset(raw, accept_language)


def _parse_structured(text: str, descriptor: ContentDescriptor) -> Any:
    if descriptor.type == "xml":
        return parse_xml(text)
    return json.loads(text)


def _decode_forced(
    raw: bytes,
    descriptor: ContentDescriptor,
    request: FetchRequest,
    response_type: ResponseType,
) -> DecodedBody:
    charset: str | None = None
    try:
        if raw:
            charset = _resolve_charset(raw, descriptor, request)
            text = decode_bytes(raw, charset) if charset else ""
        else:
            text = ""
    except Exception as e:  # noqa: BLE001
        if request.response_charset:
            raise DecodingError(
                f"Cannot decode the data by charset {request.response_charset}",
                encoding=request.response_charset,
            ) from e
        raise DecodingError(
            f"Cannot decode the data as {response_type.value}",
            encoding=response_type.value,
        ) from e

    if raw and not charset:
        msg = (
            f"Cannot decode the data as {response_type.value}, "
            "try again with the 'response_charset' option"
        )
        raise DecodingError(msg, encoding=response_type.value)

    if response_type != ResponseType.JSON:
        return DecodedBody(type=ResponseType.TEXT, data=text)

    try:
        data = _parse_structured(text, descriptor)
    except Exception as e:  # noqa: BLE001
        preview = preview_text(text)
        raise DecodingError(
            f"Cannot decode the data '{preview}' as JSON",
            encoding=response_type.value,
            preview=preview,
        ) from e

    return DecodedBody(type=ResponseType.JSON, data=data)


def _decode_auto(
    raw: bytes,
    descriptor: ContentDescriptor,
    request: FetchRequest,
) -> DecodedBody:
    if not raw:
        return DecodedBody(type=ResponseType.TEXT, data="")

    charset = _resolve_charset(raw, descriptor, request)
    if not charset:
        return DecodedBody(type=ResponseType.BUFFER, data=raw)

    text = decode_bytes(raw, charset)
    if descriptor.type in ("json", "xml"):
        return DecodedBody(
            type=ResponseType.JSON, data=_parse_structured(text, descriptor)
        )
    return DecodedBody(type=ResponseType.TEXT, data=text)


def decode(
    raw: bytes,
    descriptor: ContentDescriptor,
    request: FetchRequest,
    strict: bool = False,
) -> DecodedBody:
    """Decode a response body.

    Args:
        raw: Response body bytes.
        descriptor: Result of `classify` for the response.
        request: Request the body answers; supplies `response_type`,
            `response_charset` and the Accept-Language used for detection.
        strict: Raise DecodingError instead of downgrading to bytes when
            auto-detection fails.

    Returns:
        DecodedBody with type `text`, `json` or `buffer`.

    Raises:
        DecodingError: If a forced type cannot be produced, or auto-detection
            fails in strict mode.
    """
    forced = request.response_type

    if forced == ResponseType.BUFFER or (
        forced is None and descriptor.type == "octet-stream"
    ):
        return DecodedBody(type=ResponseType.BUFFER, data=raw)

    if forced is not None:
        return _decode_forced(raw, descriptor, request, forced)

    if descriptor.prefix not in TEXT_PREFIXES:
        return DecodedBody(type=ResponseType.BUFFER, data=raw)

    try:
        return _decode_auto(raw, descriptor, request)
    except Exception as e:  # noqa: BLE001
        if strict:
            raise DecodingError(
                f"Cannot decode the data as {descriptor.prefix}/{descriptor.type}",
                encoding=descriptor.charset,
            ) from e
        FetchMetrics.get_instance().record_decode_downgrade()
        logger.debug(
            "decode_downgraded",
            component="decode",
            content_type=f"{descriptor.prefix}/{descriptor.type}",
            error=str(e),
        )
        return DecodedBody(type=ResponseType.BUFFER, data=raw)


def finalize_response(response: FetchResponse, request: FetchRequest) -> FetchResponse:
    """Apply caller-side post-processing to a successful response.

    String data is stripped of surrounding whitespace. When the request's
    preferred Accept type is JSON, text that parses as JSON is upgraded to
    `json`; text that does not parse is left as it is.

    Args:
        response: Response produced by the transport.
        request: Request that produced it.

    Returns:
        The post-processed response.
    """
    if not isinstance(response.data, str):
        return response

    data: Any = response.data.strip()
    response_type = response.type

    accept = first_accept_type(get_header(request.headers, "accept"))
    if (
        response_type == ResponseType.TEXT
        and accept
        and extract_content_type(accept).type == "json"
    ):
        try:
            data = json.loads(data)
            response_type = ResponseType.JSON
        except (ValueError, RecursionError):
            pass

    return response.model_copy(update={"data": data, "type": response_type})

"""Query-string and form encoding with bracketed nested keys.

`{"a": {"b": 1}, "c": [1, 2]}` encodes as `a%5Bb%5D=1&c%5B0%5D=1&c%5B1%5D=2`,
or `a[b]=1&c[0]=1&c[1]=2` when only values are encoded.
"""

from collections.abc import Iterator, Mapping
from datetime import date, datetime
from typing import Any
from urllib.parse import quote


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _flatten(prefix: str, value: Any) -> Iterator[tuple[str, str]]:
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten(f"{prefix}[{key}]", item)
    elif isinstance(value, list | tuple):
        for index, item in enumerate(value):
            yield from _flatten(f"{prefix}[{index}]", item)
    else:
        yield prefix, _scalar(value)


def encode_query(data: Mapping[str, Any], encode_values_only: bool = False) -> str:
    """Encode a mapping as `key=value` pairs joined by `&`.

    Args:
        data: Mapping to encode; nested mappings and lists use bracket keys.
        encode_values_only: Leave keys (and their brackets) unescaped.

    Returns:
        The encoded string.
    """
    pairs: list[str] = []
    for key, value in data.items():
        for name, text in _flatten(str(key), value):
            encoded_name = name if encode_values_only else quote(name, safe="")
            pairs.append(f"{encoded_name}={quote(text, safe='')}")
    return "&".join(pairs)


def append_query(url: str, query: str) -> str:
    """Append a query string to a URL that may already carry one."""
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"

"""Serialization of Set-Cookie strings into a request Cookie header."""


def parse_cookie_pair(cookie: str) -> tuple[str, str] | None:
    """Extract the name and value from a Set-Cookie style string.

    Attributes after the first `;` (expires, path, HttpOnly...) are dropped.

    Args:
        cookie: e.g. `bar=123; expires=Thu, 01-Oct-20 15:33:08 GMT; path=/`.

    Returns:
        `(name, value)`, or None if the string has no name.
    """
    pair = cookie.split(";", 1)[0]
    name, _, value = pair.partition("=")
    name = name.strip()
    if not name:
        return None
    return name, value.strip()


def make_request_cookies(cookies: list[str]) -> str:
    """Join Set-Cookie strings into a Cookie header value.

    Args:
        cookies: Raw Set-Cookie style strings.

    Returns:
        `name=value` pairs joined by `; `.
    """
    pairs = (parse_cookie_pair(cookie) for cookie in cookies)
    return "; ".join(f"{name}={value}" for name, value in filter(None, pairs))


def merge_cookie_header(existing: str | None, cookies: list[str]) -> str:
    """Append serialized cookies to an existing Cookie header."""
    serialized = make_request_cookies(cookies)
    if not existing:
        return serialized
    if not serialized:
        return existing
    return f"{existing}; {serialized}"

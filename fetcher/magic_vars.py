"""Macro expansion for URL and header templates.

Recognized tokens:
- `{ts}`: Unix timestamp in seconds
- `{ms}`: Unix timestamp in milliseconds
- `{date}`: current date as `YYYY-MM-DD`
- `{date:<fmt>}`: current date/time in a moment-style format
- `{rand}`: a fresh random float in [0, 1) per occurrence
"""

import random
import re
import time
from collections.abc import Callable
from datetime import datetime


_MAGIC_VAR_PATTERN = re.compile(r"\{(ts|ms|date|rand)\}|\{date:(.+?)\}")

# Longest tokens first so `YYYY` is never read as two `YY`
_FORMAT_TOKEN_PATTERN = re.compile(
    r"\[([^\]]*)\]|YYYY|YY|MMMM|MMM|MM|M|dddd|ddd|DD|D|HH|H|hh|h|mm|m"
    r"|SSS|ss|s|A|a|X|x|ZZ|Z"
)


def _hour12(now: datetime) -> int:
    return now.hour % 12 or 12


def _utc_offset(now: datetime, sep: str) -> str:
    offset = now.strftime("%z") or "+0000"
    return f"{offset[:3]}{sep}{offset[3:5]}"


_FORMAT_TOKENS: dict[str, Callable[[datetime], str]] = {
    "YYYY": lambda d: f"{d.year:04d}",
    "YY": lambda d: f"{d.year % 100:02d}",
    "MMMM": lambda d: d.strftime("%B"),
    "MMM": lambda d: d.strftime("%b"),
    "MM": lambda d: f"{d.month:02d}",
    "M": lambda d: str(d.month),
    "dddd": lambda d: d.strftime("%A"),
    "ddd": lambda d: d.strftime("%a"),
    "DD": lambda d: f"{d.day:02d}",
    "D": lambda d: str(d.day),
    "HH": lambda d: f"{d.hour:02d}",
    "H": lambda d: str(d.hour),
    "hh": lambda d: f"{_hour12(d):02d}",
    "h": lambda d: str(_hour12(d)),
    "mm": lambda d: f"{d.minute:02d}",
    "m": lambda d: str(d.minute),
    "SSS": lambda d: f"{d.microsecond // 1000:03d}",
    "ss": lambda d: f"{d.second:02d}",
    "s": lambda d: str(d.second),
    "A": lambda d: "AM" if d.hour < 12 else "PM",
    "a": lambda d: "am" if d.hour < 12 else "pm",
    "X": lambda d: str(int(d.timestamp())),
    "x": lambda d: str(int(d.timestamp() * 1000)),
    "ZZ": lambda d: _utc_offset(d, ""),
    "Z": lambda d: _utc_offset(d, ":"),
}


def format_date(now: datetime, fmt: str) -> str:
    """Format a datetime with moment-style tokens.

    Text inside square brackets is emitted literally; characters that are
    not tokens pass through unchanged.

    Args:
        now: Datetime to format.
        fmt: Format string such as `YYYY-MM-DD HH:mm:ss`.

    Returns:
        The formatted string.
    """

    def replace(match: re.Match[str]) -> str:
        literal = match.group(1)
        if literal is not None:
            return literal
        return _FORMAT_TOKENS[match.group(0)](now)

    return _FORMAT_TOKEN_PATTERN.sub(replace, fmt)


def resolve_magic_vars(
    text: str,
    clock: Callable[[], float] = time.time,
    rand: Callable[[], float] = random.random,
) -> str:
    """Expand magic variables in a template.

    Args:
        text: URL or header template.
        clock: Source of the current Unix time in seconds.
        rand: Source of random floats in [0, 1).

    Returns:
        The template with every recognized token replaced.
    """
    if "{" not in text:
        return text

    timestamp = clock()
    now = datetime.fromtimestamp(timestamp).astimezone()

    def replace(match: re.Match[str]) -> str:
        name, fmt = match.group(1), match.group(2)
        if fmt is not None:
            return format_date(now, fmt)
        if name == "ts":
            return str(int(timestamp))
        if name == "ms":
            return str(int(timestamp * 1000))
        if name == "date":
            return format_date(now, "YYYY-MM-DD")
        return str(rand())

    return _MAGIC_VAR_PATTERN.sub(replace, text)

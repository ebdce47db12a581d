"""Constants for the fetch client.

Centralizes HTTP-related constants to avoid duplication across modules.
"""

import re


# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_NOT_MODIFIED = 304

# Statuses considered transient
RETRYABLE_STATUSES = frozenset({408, 409, 425, 500, 502, 503, 504})

# Request defaults
DEFAULT_METHOD = "GET"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_MAX_CONNECTIONS = 10
DEFAULT_CONTENT_TYPE = "text/plain; charset=UTF-8"
QUERY_METHODS = frozenset({"GET", "HEAD"})

# Backoff defaults (milliseconds)
DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 5000

# A hung-up socket is retried at most this many times
HANG_UP_MAX_RETRIES = 1

# Remote closed the connection without a response
HANG_UP_PATTERN = re.compile(
    r"net::ERR_EMPTY_RESPONSE|socket hang up"
    r"|Server disconnected without sending a response"
)

# Refused connections, redirect loops and unreachable hosts
UNRETRYABLE_PATTERN = re.compile(
    "|".join(
        [
            "ERR_CONNECTION_REFUSED",
            "ECONNREFUSED",
            "Connection refused",
            "ERR_TOO_MANY_REDIRECTS",
            "Max redirects",
            "TooManyRedirects",
            "Exceeded maximum allowed redirects",
            "ERR_INTERNET_DISCONNECTED",
            "ENOTFOUND",
            "Name or service not known",
            "nodename nor servname provided",
            "Temporary failure in name resolution",
            "getaddrinfo failed",
            "Network is unreachable",
        ]
    ),
    re.IGNORECASE,
)

HANG_UP_MESSAGE = "net::ERR_EMPTY_RESPONSE at {url}"

# Chrome 80 on macOS
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_3) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/80.0.3987.116 "
    "Safari/537.36"
)
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9,zh-CN;q=0.8,zh;q=0.7"
DEFAULT_LOCALE = "en-US"

# Prefixes eligible for text decoding in auto-detect mode
TEXT_PREFIXES = frozenset({"text", "application", "*"})

# Language hints that switch charset detection to East-Asian encodings
EAST_ASIAN_LANGUAGE_HINTS = ("zh", "jp", "ja", "ko")
EAST_ASIAN_CODEPAGES = [
    "utf_8",
    "gb18030",
    "gb2312",
    "gbk",
    "big5",
    "big5hkscs",
    "shift_jis",
    "cp932",
    "euc_jp",
    "iso2022_jp",
    "euc_kr",
    "cp949",
    "iso2022_kr",
]

# Error preview truncation
PREVIEW_MAX_LENGTH = 32
PREVIEW_KEEP_LENGTH = 29

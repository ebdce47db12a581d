"""Unit tests for cookie serialization."""

from fetcher.cookies import make_request_cookies, merge_cookie_header, parse_cookie_pair


class TestParseCookiePair:
    """Tests for parse_cookie_pair."""

    def test_drops_attributes(self) -> None:
        """Test that attributes after the first `;` are ignored."""
        cookie = "bar=123; expires=Thu, 01-Oct-20 15:33:08 GMT; path=/; HttpOnly"

        assert parse_cookie_pair(cookie) == ("bar", "123")

    def test_value_with_equals(self) -> None:
        """Test that only the first `=` separates name and value."""
        assert parse_cookie_pair("token=a=b==") == ("token", "a=b==")

    def test_empty_value(self) -> None:
        """Test a cookie without a value."""
        assert parse_cookie_pair("flag") == ("flag", "")

    def test_no_name(self) -> None:
        """Test that nameless strings are rejected."""
        assert parse_cookie_pair("=value") is None
        assert parse_cookie_pair("") is None


class TestMakeRequestCookies:
    """Tests for Cookie header construction."""

    def test_joins_pairs(self) -> None:
        """Test that pairs are joined with `; `."""
        cookies = ["foo=bar", "bar=123; expires=Thu, 01-Oct-20 15:33:08 GMT; path=/"]

        assert make_request_cookies(cookies) == "foo=bar; bar=123"

    def test_skips_invalid(self) -> None:
        """Test that nameless entries are skipped."""
        assert make_request_cookies(["=x", "a=1"]) == "a=1"

    def test_merge_with_existing(self) -> None:
        """Test that cookies are appended to an existing header."""
        assert merge_cookie_header("sid=1", ["a=2"]) == "sid=1; a=2"
        assert merge_cookie_header(None, ["a=2"]) == "a=2"
        assert merge_cookie_header("sid=1", []) == "sid=1"

"""Unit tests for content-type classification."""

import pytest

from fetcher.classify import classify, extract_content_type, first_accept_type
from fetcher.models import ContentDescriptor


class TestExtractContentType:
    """Tests for media type parsing."""

    def test_full_value(self) -> None:
        """Test prefix, type and charset are split out."""
        result = extract_content_type("text/html; charset=gbk")

        assert result == ContentDescriptor(type="html", prefix="text", charset="gbk")

    def test_without_charset(self) -> None:
        """Test that a missing charset stays None."""
        result = extract_content_type("application/json")

        assert result.prefix == "application"
        assert result.type == "json"
        assert result.charset is None

    def test_charset_not_first_parameter(self) -> None:
        """Test that charset is found among other parameters."""
        result = extract_content_type('text/plain; format=flowed; Charset="UTF-8"')

        assert result.type == "plain"
        assert result.charset == "UTF-8"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value: str | None) -> None:
        """Test that empty input gives an empty descriptor."""
        assert extract_content_type(value) == ContentDescriptor()

    def test_wildcard(self) -> None:
        """Test Accept-style wildcards."""
        result = extract_content_type("*/*")

        assert result.prefix == "*"
        assert result.type == "*"


class TestFirstAcceptType:
    """Tests for Accept header parsing."""

    def test_first_range(self) -> None:
        """Test that the first media range is returned."""
        assert first_accept_type("application/json, text/plain, */*") == (
            "application/json"
        )

    def test_missing(self) -> None:
        """Test that an absent header gives None."""
        assert first_accept_type(None) is None
        assert first_accept_type("") is None


class TestClassify:
    """Tests for response classification."""

    def test_response_content_type_wins(self) -> None:
        """Test that the response header takes precedence."""
        result = classify(
            {"content-type": "text/html; charset=utf-8"},
            {"accept": "application/json"},
        )

        assert result.type == "html"
        assert result.charset == "utf-8"

    def test_header_lookup_ignores_case(self) -> None:
        """Test that Content-Type may be stored in any case."""
        result = classify({"Content-Type": "application/xml"}, None)

        assert result.type == "xml"

    def test_falls_back_to_accept(self) -> None:
        """Test that the first accepted type is assumed without Content-Type."""
        result = classify({}, {"accept": "application/json, text/plain, */*"})

        assert result.prefix == "application"
        assert result.type == "json"
        assert result.charset is None

    def test_falls_back_to_plain_text(self) -> None:
        """Test the final default of text/plain in UTF-8."""
        result = classify(None, None)

        assert result == ContentDescriptor(
            type="plain", prefix="text", charset="UTF-8"
        )
